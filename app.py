"""
MVC Map - Streamlit application

Loads a dataset of mapped value cases (uploaded or synthetic) and shows it
on the interactive MVC map.

Usage:
    streamlit run app.py
"""

import io
import json
import logging
from typing import List, Optional

import streamlit as st
import pandas as pd
import geopandas as gpd

from mvc_map.map_config import get_map_config
from mvc_map.models import (
    DataPoint, points_from_dataframe, points_from_geodataframe, points_from_records
)
from mvc_map.sample_data import generate_sample_mvcs, sample_color_dictionary
from mvc_map.streamlit_map import render_mvc_map_page

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_COORD = {'latitude': 55.7558, 'longitude': 37.6173}


def _parse_participants(value):
    """CSV exports carry participants as a JSON list in one cell."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"Unreadable participants cell: {value[:50]!r}")
            return []
    return value


@st.cache_resource
def load_uploaded_mvcs(file_name: str, file_bytes: bytes) -> List[DataPoint]:
    """Parse an uploaded CSV, JSON or GeoJSON file into MVC data points."""
    suffix = file_name.lower().rsplit('.', 1)[-1]

    if suffix == 'csv':
        df = pd.read_csv(io.BytesIO(file_bytes))
        if 'participants' in df.columns:
            df['participants'] = df['participants'].map(_parse_participants)
        points = points_from_dataframe(df)
    elif suffix == 'geojson':
        gdf = gpd.read_file(io.BytesIO(file_bytes))
        points = points_from_geodataframe(gdf)
    elif suffix == 'json':
        points = points_from_records(json.loads(file_bytes.decode('utf-8')))
    else:
        raise ValueError(f"Unsupported file type: {file_name}")

    logger.info(f"Loaded {len(points)} MVCs from {file_name}")
    return points


@st.cache_resource
def load_sample_mvcs(n_points: int, seed: int) -> List[DataPoint]:
    return generate_sample_mvcs(
        n_points,
        center=(DEFAULT_COORD['latitude'], DEFAULT_COORD['longitude']),
        seed=seed
    )


def main():
    st.set_page_config(
        page_title="MVC Map",
        page_icon="🗺️",
        layout="wide",
        initial_sidebar_state="expanded"
    )
    st.title("🗺️ MVC Map")

    config = get_map_config()

    with st.sidebar:
        st.header("Data")
        source = st.radio("Source", ["Sample data", "Upload file"])
        region_level = st.number_input("Region level", min_value=0, max_value=5, value=1)

        points: Optional[List[DataPoint]] = None
        if source == "Sample data":
            n_points = st.slider("Number of MVCs", 0, 5000, 1500, step=50)
            seed = st.number_input("Random seed", value=42)
            points = load_sample_mvcs(int(n_points), int(seed))
        else:
            uploaded = st.file_uploader("MVC file", type=['csv', 'json', 'geojson'])
            if uploaded is not None:
                try:
                    points = load_uploaded_mvcs(uploaded.name, uploaded.getvalue())
                except ValueError as e:
                    st.error(f"Could not load {uploaded.name}: {e}")

    if points is None:
        st.info("Upload an MVC file to show it on the map")
        return

    selected = render_mvc_map_page(
        points,
        default_coord=DEFAULT_COORD,
        region_level=int(region_level),
        color_dictionary=sample_color_dictionary(),
        config=config,
    )

    if selected is not None:
        st.subheader("Selected MVC")
        st.json({
            'latitude': selected.latitude,
            'longitude': selected.longitude,
            'participant_type_id': selected.participant_type_id,
            'participants': len(selected.participants),
            'fatal': any(p.is_dead for p in selected.participants),
        })


if __name__ == "__main__":
    main()
