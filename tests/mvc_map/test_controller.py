"""
Tests for the MVC map controller.

This module tests mounting, redrawing on new host inputs, layer switching on
zoom, viewport culling and the events relayed to the host.
"""

import pytest
import folium
from unittest.mock import Mock

from conftest import CENTER, make_point
from mvc_map.controller import MapController, MapProps
from mvc_map.models import ActiveLayer, MapObjectMarkerData
from mvc_map.sample_data import generate_sample_mvcs


def _feature_groups(controller):
    return [
        child for child in controller.map_view.folium_map._children.values()
        if isinstance(child, folium.FeatureGroup)
    ]


class TestMounting:
    """Test map initialization."""

    @pytest.mark.parametrize("region_level,zoom", [(None, 10), (0, 10), (1, 10), (2, 14), (3, 14)])
    def test_initial_zoom_from_region_level(self, mounted_controller, region_level, zoom):
        """Test that region-level views start at zoom 14, others at 10."""
        controller = mounted_controller(region_level=region_level)
        assert controller.map_view.get_zoom() == zoom

    def test_map_centered_on_default_coord(self, mounted_controller):
        """Test the initial center."""
        controller = mounted_controller()
        assert controller.map_view.center == CENTER

    def test_default_coord_as_pair(self):
        """Test that a (lat, lng) pair is accepted as the default center."""
        controller = MapController(MapProps(default_coord=CENTER))
        controller.mount()
        assert controller.map_view.center == CENTER

    def test_container_sized_to_parent(self, mounted_controller):
        """Test that the map takes its parent's height."""
        controller = mounted_controller()
        assert controller.map_view.get_size() == (1024, 600)

    def test_missing_parent_height_uses_default(self):
        """Test the configured default height."""
        controller = MapController(MapProps(default_coord=CENTER))
        controller.mount(parent_height=0)
        assert controller.map_view.height == 600

    def test_base_tile_layer(self, mounted_controller):
        """Test that the CartoDB base layer is attached."""
        controller = mounted_controller()
        tiles = [
            child for child in controller.map_view.folium_map._children.values()
            if isinstance(child, folium.TileLayer)
        ]
        assert len(tiles) == 1

    def test_map_ready_fired_once(self, mounted_controller, sample_points):
        """Test the map ready notification."""
        on_map_ready = Mock()
        controller = mounted_controller(sample_points, on_map_ready=on_map_ready)

        controller.receive_props(controller.props.evolve(mvcs=list(sample_points)))

        on_map_ready.assert_called_once_with(controller.map_view)

    def test_mount_twice_rejected(self, mounted_controller):
        """Test that a controller mounts a single map."""
        controller = mounted_controller()
        with pytest.raises(RuntimeError):
            controller.mount()

    def test_draw_before_mount_rejected(self, sample_points):
        """Test that drawing needs a map."""
        controller = MapController(MapProps(default_coord=CENTER, mvcs=sample_points))
        with pytest.raises(RuntimeError):
            controller.draw_layers(sample_points)


class TestLayerSelection:
    """Test which layer is attached after draws and zoom changes."""

    def test_small_dataset_shows_points(self, mounted_controller, sample_points):
        """Test that small datasets are shown as markers."""
        controller = mounted_controller(sample_points)

        assert controller.active_layer is ActiveLayer.POINTS
        assert controller.map_view.has_layer(controller.point_layer)
        assert not controller.map_view.has_layer(controller.heatmap_layer)

    def test_large_dataset_zoomed_out_shows_heatmap(self, mounted_controller):
        """Test that 1500 MVCs at zoom 10 are shown as a heatmap with markers detached."""
        points = generate_sample_mvcs(1500, center=CENTER, seed=7)
        controller = mounted_controller(points)

        assert controller.active_layer is ActiveLayer.HEATMAP
        assert controller.map_view.has_layer(controller.heatmap_layer)
        assert not controller.map_view.has_layer(controller.point_layer)
        assert len(controller.markers) == 1500
        assert controller.attached_markers() == []

    def test_zoom_in_switches_to_points_and_culls(self, mounted_controller):
        """Test that zooming to 16 shows points culled to the padded viewport."""
        points = generate_sample_mvcs(1500, center=CENTER, seed=7)
        controller = mounted_controller(points)

        controller.map_view.set_zoom(16)

        assert controller.active_layer is ActiveLayer.POINTS
        assert controller.map_view.has_layer(controller.point_layer)
        assert not controller.map_view.has_layer(controller.heatmap_layer)

        expanded = controller.map_view.get_bounds().pad(0.7)
        attached = controller.attached_markers()
        assert 0 < len(attached) < 1500
        for marker in controller.markers:
            assert marker.is_attached == expanded.contains(*marker.location)
            assert marker.was_visible == marker.is_attached

    def test_zoom_out_switches_back_to_heatmap(self, mounted_controller):
        """Test that zooming out again restores the heatmap."""
        points = generate_sample_mvcs(1500, center=CENTER, seed=7)
        controller = mounted_controller(points)
        controller.map_view.set_zoom(16)

        controller.map_view.set_zoom(12)

        assert controller.active_layer is ActiveLayer.HEATMAP
        assert not controller.map_view.has_layer(controller.point_layer)
        assert controller.map_view.has_layer(controller.heatmap_layer)

    def test_exactly_one_layer_attached(self, mounted_controller):
        """Test that exactly one MVC layer is on the map across zoom changes."""
        points = generate_sample_mvcs(1200, center=CENTER, seed=3)
        controller = mounted_controller(points)

        for zoom in (10, 15, 14, 18, 3, 15):
            controller.map_view.set_zoom(zoom)
            on_map = [
                controller.map_view.has_layer(controller.point_layer),
                controller.map_view.has_layer(controller.heatmap_layer),
            ]
            assert on_map.count(True) == 1


class TestViewportCulling:
    """Test culling as the viewport moves."""

    def _pan_scenario_points(self):
        # 40 MVCs around the center, 10 about 1.2 degrees east of it
        near = [make_point(CENTER[0] + (i % 5) * 0.002, CENTER[1] + (i % 8) * 0.005 - 0.02)
                for i in range(40)]
        east = [make_point(CENTER[0], CENTER[1] + 1.2 + i * 0.001) for i in range(10)]
        return near, east

    def test_pan_detaches_exactly_the_points_left_behind(self, mounted_controller):
        """Test that panning west detaches the 10 eastern MVCs and keeps the other 40."""
        near, east = self._pan_scenario_points()
        controller = mounted_controller(near + east)

        assert controller.active_layer is ActiveLayer.POINTS
        assert len(controller.attached_markers()) == 50

        controller.map_view.pan_to((CENTER[0], CENTER[1] - 1.0))

        attached = {id(marker.point) for marker in controller.attached_markers()}
        assert attached == {id(point) for point in near}
        assert len(controller.markers) == 50

    def test_viewport_events_without_layers_are_noops(self, mounted_controller):
        """Test that viewport events before any dataset do nothing."""
        controller = mounted_controller([])

        controller.map_view.set_zoom(16)
        controller.map_view.pan_to((0, 0))
        controller.map_view.invalidate_size(800, 400)

        assert controller.active_layer is ActiveLayer.NONE
        assert controller.update_marker_visibility() is None

    def test_culling_skipped_while_heatmap_shown(self, mounted_controller):
        """Test the explicit guard while the heatmap is active."""
        points = generate_sample_mvcs(1500, center=CENTER, seed=7)
        controller = mounted_controller(points)

        assert controller.update_marker_visibility() is None
        assert all(marker.was_visible for marker in controller.markers)

    def test_repeated_culling_is_idempotent(self, mounted_controller, sample_points):
        """Test that a second pass with unchanged bounds toggles nothing."""
        controller = mounted_controller(sample_points)
        controller.map_view.pan_to((CENTER[0] + 5, CENTER[1]))

        result = controller.update_marker_visibility()

        assert result.toggled == 0
        assert controller.attached_markers() == []

    def test_resize_triggers_culling(self, mounted_controller):
        """Test that shrinking the map detaches markers that fall out of range."""
        near, east = self._pan_scenario_points()
        controller = mounted_controller(near + east)

        controller.map_view.invalidate_size(width=256, height=600)

        assert len(controller.attached_markers()) == 40


class TestRedraw:
    """Test reactions to new host inputs."""

    def test_same_references_do_not_redraw(self, mounted_controller, sample_points):
        """Test that unchanged dataset references are ignored."""
        controller = mounted_controller(sample_points)
        point_layer = controller.point_layer

        redrawn = controller.receive_props(controller.props.evolve(region_level=3))

        assert redrawn is False
        assert controller.point_layer is point_layer

    def test_redraw_never_accumulates_markers(self, mounted_controller, sample_points):
        """Test that redrawing identical content keeps one marker per MVC."""
        controller = mounted_controller(sample_points)
        old_layers = [controller.point_layer]

        for _ in range(3):
            assert controller.receive_props(controller.props.evolve(mvcs=list(sample_points)))
            assert len(controller.markers) == len(sample_points)
            assert len(controller.attached_markers()) <= len(sample_points)
            assert len(_feature_groups(controller)) == 1
            old_layers.append(controller.point_layer)

        for layer in old_layers[:-1]:
            assert not controller.map_view.has_layer(layer)
            assert len(layer) == 0

    def test_new_dataset_replaces_heatmap(self, mounted_controller):
        """Test that the heatmap of the previous dataset is removed."""
        controller = mounted_controller(generate_sample_mvcs(1500, center=CENTER, seed=1))
        old_heatmap = controller.heatmap_layer

        controller.receive_props(controller.props.evolve(mvcs=generate_sample_mvcs(1600, center=CENTER, seed=2)))

        assert not controller.map_view.has_layer(old_heatmap)
        assert controller.map_view.has_layer(controller.heatmap_layer)
        assert len(controller.heatmap_layer) == 1600

    def test_empty_dataset_clears_map(self, mounted_controller, sample_points):
        """Test that an empty dataset leaves neither layer on the map."""
        controller = mounted_controller(sample_points)
        old_points = controller.point_layer

        controller.receive_props(controller.props.evolve(mvcs=[]))

        assert controller.active_layer is ActiveLayer.NONE
        assert controller.point_layer is None
        assert controller.heatmap_layer is None
        assert not controller.map_view.has_layer(old_points)
        assert _feature_groups(controller) == []

    def test_records_accepted_as_dataset(self, mounted_controller, sample_records):
        """Test that plain host records are converted to data points."""
        controller = mounted_controller(sample_records)

        assert len(controller.markers) == 2
        assert controller.markers[0].visual.outline_width == 2

    def test_map_objects_rebuilt_independently(self, mounted_controller, sample_points):
        """Test that new map objects do not rebuild the MVC layers."""
        objects = [MapObjectMarkerData(CENTER[0], CENTER[1], 'School')]
        controller = mounted_controller(sample_points, map_objects_markers_data=objects)
        point_layer = controller.point_layer
        old_poi = controller.poi_markers[0]

        new_objects = [{'latitude': CENTER[0], 'longitude': CENTER[1], 'name': 'Hospital'},
                       {'latitude': CENTER[0] + 0.1, 'longitude': CENTER[1], 'name': 'Park'}]
        assert controller.receive_props(controller.props.evolve(map_objects_markers_data=new_objects))

        assert controller.point_layer is point_layer
        assert len(controller.poi_markers) == 2
        assert not controller.map_view.has_layer(old_poi)

    def test_map_objects_drawn_with_empty_dataset(self, mounted_controller):
        """Test that map objects are shown even without MVCs."""
        objects = [MapObjectMarkerData(CENTER[0], CENTER[1], 'School')]
        controller = mounted_controller([], map_objects_markers_data=objects)

        assert len(controller.poi_markers) == 1
        assert controller.map_view.has_layer(controller.poi_markers[0])

    def test_props_before_mount_only_stored(self, sample_points):
        """Test that new props before mounting are kept for the mount."""
        controller = MapController(MapProps(default_coord=CENTER))

        assert controller.receive_props(controller.props.evolve(mvcs=sample_points)) is False

        controller.mount()
        assert len(controller.markers) == len(sample_points)


class TestSelection:
    """Test point selection relayed to the host."""

    def test_click_on_marker_selects_mvc(self, mounted_controller, sample_points):
        """Test that clicking a point marker forwards its MVC."""
        on_mvc_selected = Mock()
        controller = mounted_controller(sample_points, on_mvc_selected=on_mvc_selected)

        marker = controller.handle_map_click(*sample_points[2].location)

        assert marker.point is sample_points[2]
        on_mvc_selected.assert_called_once_with(sample_points[2])

    def test_click_elsewhere_selects_nothing(self, mounted_controller, sample_points):
        """Test that clicks off any marker are not forwarded."""
        on_mvc_selected = Mock()
        controller = mounted_controller(sample_points, on_mvc_selected=on_mvc_selected)

        assert controller.handle_map_click(0, 0) is None
        on_mvc_selected.assert_not_called()

    def test_click_ignored_while_heatmap_shown(self, mounted_controller):
        """Test that heatmap clicks do not select MVCs."""
        points = generate_sample_mvcs(1500, center=CENTER, seed=7)
        on_mvc_selected = Mock()
        controller = mounted_controller(points, on_mvc_selected=on_mvc_selected)

        assert controller.handle_map_click(*points[0].location) is None
        on_mvc_selected.assert_not_called()

    def test_click_without_handler(self, mounted_controller, sample_points):
        """Test that clicks are harmless when the host does not listen."""
        controller = mounted_controller(sample_points)
        assert controller.handle_map_click(*sample_points[0].location) is not None
