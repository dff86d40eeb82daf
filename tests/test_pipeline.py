"""
End-to-end tests for the processing pipeline.

Run with: pytest tests/test_pipeline.py -v
"""

import logging

import pytest
from pydantic import ValidationError

from thermal_bridging import process
from thermal_bridging.core import (
    Boundary,
    PointBridge,
    ProcessOptions,
    PsiSetModel,
    Severity,
    Shade,
    SubSurface,
    Surface,
    SurfaceType,
    UprateTarget,
)

from conftest import massless_construction, wall


POOR = ProcessOptions(psi_set="poor (BETBG)", khi_set="poor (BETBG)")


def windowed_wall(multiplier=1, window=None):
    return wall(
        "wall",
        [[0, 0, 3], [0, 0, 0], [4, 0, 0], [4, 0, 3]],
        sub_surfaces=[SubSurface(
            id="window",
            points=window or [[1, 0, 2], [1, 0, 1], [3, 0, 1], [3, 0, 2]],
            multiplier=multiplier,
        )],
    )


class TestScenarios:
    """Reference scenarios."""

    def test_convex_corner(self, corner_walls, sink):
        result = process(corner_walls, options=POOR, sink=sink)
        assert result.status == "INFO"
        assert len(result.edges) == 1
        edge = result.edges[0]
        assert edge.type == "cornerconvex"
        assert edge.loss == pytest.approx(2.55)
        assert sorted(edge.surfaces) == ["wall E", "wall S"]
        for s in result.surfaces:
            assert s.edge_loss == pytest.approx(1.275)
            assert s.r_after == pytest.approx(1 / (0.5 + 1.275 / 9))

    def test_balcony(self, exposed_floor, balcony_slab, sink):
        result = process([exposed_floor], [balcony_slab], options=POOR, sink=sink)
        assert result.edges[0].type == "balcony"
        assert result.surface("exposed floor").heat_loss == pytest.approx(5.0)

    def test_box(self, box_surfaces, sink):
        result = process(box_surfaces, options=POOR, sink=sink)
        assert len(result.edges) == 12
        for name in ("south", "east", "north", "west"):
            assert result.surface(name).heat_loss == pytest.approx(15.05)
            assert result.surface(name).net_area == pytest.approx(30.0)
        assert result.surface("roof").heat_loss == pytest.approx(16.0)
        # Ground-contact slab is never derated
        assert result.surface("slab") is None

    def test_total_heat_loss_is_conserved(self, box_surfaces, sink):
        result = process(box_surfaces, options=POOR, sink=sink)
        assert sum(s.heat_loss for s in result.surfaces) == pytest.approx(
            sum(e.loss for e in result.edges)
        )

    def test_default_options_use_settings(self, corner_walls, sink):
        result = process(corner_walls, sink=sink)
        assert result.edges[0].psi_set == "poor (BETBG)"

    def test_edge_shares(self, corner_walls, sink):
        result = process(corner_walls, options=POOR, sink=sink)
        assert result.edges[0].shares == pytest.approx({"wall S": 1.275, "wall E": 1.275})

    def test_debug_records_carry_context(self, corner_walls, sink, caplog):
        with caplog.at_level(logging.DEBUG, logger="thermal_bridging"):
            process(corner_walls, options=POOR, sink=sink)
        derated = {getattr(r, "surface_id", None) for r in caplog.records}
        assert {"wall S", "wall E"} <= derated
        typed = [r for r in caplog.records if hasattr(r, "edge_id")]
        assert typed and all(r.psi_set == "poor (BETBG)" for r in typed)


class TestDerating:
    """Tests for surface derating results."""

    def test_ratio(self, sink):
        """20 m2 at R-2 with 5 W/K of bridging loses a third of its resistance."""
        surface = wall(
            "wall",
            [[0, 0, 4], [0, 0, 0], [5, 0, 0], [5, 0, 4]],
            point_bridges=[PointBridge(khi="steel", count=5)],
        )
        options = ProcessOptions(
            psi_set="poor (BETBG)",
            khi_set="steel",
            khi_sets=[{"name": "steel", "values": {"steel": 1.0}}],
        )
        result = process([surface], options=options, sink=sink)
        outcome = result.surface("wall")
        assert outcome.heat_loss == pytest.approx(5.0)
        assert outcome.point_loss == pytest.approx(5.0)
        assert outcome.r_after == pytest.approx(4 / 3)
        assert outcome.ratio == pytest.approx(100 / 3)

    def test_surfaces_are_updated(self, corner_walls, sink):
        original = corner_walls[0].construction
        process(corner_walls, options=POOR, sink=sink)
        surface = corner_walls[0]
        assert surface.heat_loss == pytest.approx(1.275)
        assert surface.ratio > 0
        assert surface.construction is not original
        assert surface.construction.name == "wall S c tbd"
        assert surface.construction.layers[0].resistance < 2.0
        assert original.layers[0].resistance == pytest.approx(2.0)

    def test_shared_construction_is_cloned_per_surface(self, corner_walls, sink):
        shared = massless_construction()
        for surface in corner_walls:
            surface.construction = shared
        process(corner_walls, options=POOR, sink=sink)
        a, b = (s.construction for s in corner_walls)
        assert a is not b
        assert shared.layers[0].resistance == pytest.approx(2.0)

    def test_point_bridges_add_to_edges(self, corner_walls, sink):
        corner_walls[0].point_bridges = [PointBridge(khi="point", count=2)]
        result = process(corner_walls, options=POOR, sink=sink)
        outcome = result.surface("wall S")
        assert outcome.point_loss == pytest.approx(1.8)
        assert outcome.heat_loss == pytest.approx(1.275 + 1.8)

    def test_unconditioned_surfaces_are_skipped(self, corner_walls, sink):
        corner_walls[1].conditioned = False
        result = process(corner_walls, options=POOR, sink=sink)
        assert result.surface("wall E") is None
        # Corners need both walls deratable
        assert result.edges[0].type == "transition"
        assert result.surface("wall S").heat_loss == 0.0

    def test_missing_construction(self, corner_walls, sink):
        corner_walls[1].construction = None
        result = process(corner_walls, options=POOR, sink=sink)
        assert result.status == "ERROR"
        assert result.surface("wall E") is None

    def test_too_conductive_warning(self, sink):
        surface = wall(
            "wall",
            [[0, 0, 1], [0, 0, 0], [1, 0, 0], [1, 0, 1]],
            construction=massless_construction(0.002),
            point_bridges=[PointBridge(khi="point", count=1000)],
        )
        result = process([surface], options=POOR, sink=sink)
        assert result.status == "WARNING"
        assert result.surface("wall").residual_loss > 0
        assert any("too conductive" in e.message for e in sink.filter(Severity.WARN))


class TestOpenings:
    """Tests for windows and doors."""

    def test_window_perimeter(self, sink):
        result = process([windowed_wall()], options=POOR, sink=sink)
        outcome = result.surface("wall")
        assert outcome.net_area == pytest.approx(10.0)
        assert outcome.heat_loss == pytest.approx(3.0)
        assert outcome.ratio == pytest.approx(37.5)

    def test_multiplier(self, sink):
        result = process([windowed_wall(multiplier=2)], options=POOR, sink=sink)
        outcome = result.surface("wall")
        assert outcome.net_area == pytest.approx(8.0)
        assert outcome.heat_loss == pytest.approx(6.0)

    def test_custom_psi_set(self, sink):
        options = ProcessOptions(
            psi_set="frames",
            psi_sets=[PsiSetModel(name="frames", values={
                "rimjoist": 0.3, "parapet": 0.4, "fenestration": 0.2, "corner": 0.1,
                "balcony": 0.6, "party": 0.5, "grade": 0.45,
            })],
        )
        result = process([windowed_wall()], options=options, sink=sink)
        assert result.surface("wall").heat_loss == pytest.approx(1.2)

    def test_opening_outside_host(self, sink):
        host = windowed_wall(window=[[5, 0, 2], [5, 0, 1], [6, 0, 1], [6, 0, 2]])
        result = process([host], options=POOR, sink=sink)
        assert result.status == "ERROR"
        assert result.edges == []
        assert any("doesn't fit" in e["message"] for e in result.log)
        # Rejected openings keep their area in the host
        assert result.surface("wall").net_area == pytest.approx(12.0)

    def test_opening_off_plane(self, sink):
        host = windowed_wall(window=[[1, 0.5, 2], [1, 0.5, 1], [3, 0.5, 1], [3, 0.5, 2]])
        result = process([host], options=POOR, sink=sink)
        assert result.status == "ERROR"
        assert result.surface("wall").heat_loss == 0.0

    def test_overlapping_openings(self, sink):
        host = wall(
            "wall",
            [[0, 0, 3], [0, 0, 0], [4, 0, 0], [4, 0, 3]],
            sub_surfaces=[
                SubSurface(id="a", points=[[1, 0, 2], [1, 0, 1], [3, 0, 1], [3, 0, 2]]),
                SubSurface(id="b", points=[[2, 0, 2], [2, 0, 1], [3.5, 0, 1], [3.5, 0, 2]]),
            ],
        )
        result = process([host], options=POOR, sink=sink)
        assert result.status == "ERROR"
        assert {e.id for e in result.edges}
        assert all("b" not in e.surfaces for e in result.edges)

    def test_opening_close_to_edge_warns(self, sink):
        host = windowed_wall(window=[[0.03, 0, 2], [0.03, 0, 1], [2, 0, 1], [2, 0, 2]])
        options = ProcessOptions(psi_set="poor (BETBG)", sub_tolerance=0.05)
        result = process([host], options=options, sink=sink)
        assert result.status == "WARNING"

    def test_opening_wound_against_host(self, corner_walls, sink):
        """A reversed opening is dropped, its host and the host's corner are kept."""
        corner_walls[0].sub_surfaces = [
            SubSurface(id="window", points=[[1, 0, 2], [2, 0, 2], [2, 0, 1], [1, 0, 1]]),
        ]
        result = process(corner_walls, options=POOR, sink=sink)
        assert result.status == "ERROR"
        assert any("wound against" in e["message"] for e in result.log)
        assert [e.type for e in result.edges] == ["cornerconvex"]
        for name in ("wall S", "wall E"):
            assert result.surface(name).edge_loss == pytest.approx(1.275)
        assert result.surface("wall S").net_area == pytest.approx(9.0)


class TestUprating:
    """Tests for uprating surface groups."""

    def test_walls_meet_target(self, box_surfaces, sink):
        for surface in box_surfaces:
            if surface.type == SurfaceType.WALL:
                surface.construction = massless_construction(2.0, film=0.3)
        options = ProcessOptions(
            psi_set="efficient (BETBG)",
            uprate=[UprateTarget(surface_type=SurfaceType.WALL, ut=0.3)],
        )
        result = process(box_surfaces, options=options, sink=sink)

        uprated = result.uprates[0]
        assert uprated.uo is not None
        assert sorted(uprated.surfaces) == ["east", "north", "south", "west"]
        assert uprated.area == pytest.approx(120.0)
        assert uprated.heat_loss == pytest.approx(14.4)
        for surface in box_surfaces:
            if surface.type == SurfaceType.WALL:
                assert surface.heat_loss == pytest.approx(3.6)
                assert 1 / surface.construction.rsi == pytest.approx(0.3)

    def test_construction_filter(self, box_surfaces, sink):
        options = ProcessOptions(
            psi_set="efficient (BETBG)",
            uprate=[UprateTarget(surface_type=SurfaceType.WALL, ut=0.3, construction="other")],
        )
        result = process(box_surfaces, options=options, sink=sink)
        assert result.uprates[0].surfaces == []
        assert result.uprates[0].uo is None
        assert result.status == "WARNING"

    def test_unattainable_target(self, box_surfaces, sink):
        options = ProcessOptions(
            psi_set="poor (BETBG)",
            uprate=[UprateTarget(surface_type=SurfaceType.CEILING, ut=0.01)],
        )
        result = process(box_surfaces, options=options, sink=sink)
        assert result.uprates[0].uo is None
        assert result.status == "ERROR"


class TestFailures:
    """Tests for fatal and per-object failures."""

    def test_unknown_psi_set(self, corner_walls, sink):
        result = process(corner_walls, options=ProcessOptions(psi_set="imaginary"), sink=sink)
        assert result.status == "FATAL"
        assert result.surfaces == []
        assert result.edges == []
        assert sink.is_fatal

    def test_incomplete_psi_set(self, corner_walls, sink):
        options = ProcessOptions(
            psi_set="partial",
            psi_sets=[PsiSetModel(name="partial", values={"grade": 0.5})],
        )
        result = process(corner_walls, options=options, sink=sink)
        assert result.status == "FATAL"
        assert "incomplete" in result.log[0]["message"]

    def test_unknown_khi_set(self, corner_walls, sink):
        result = process(corner_walls, options=ProcessOptions(khi_set="imaginary"), sink=sink)
        assert result.status == "FATAL"

    def test_duplicate_ids(self, corner_walls, sink):
        twin = wall("wall S", [[0, 0, 6], [0, 0, 3], [3, 0, 3], [3, 0, 6]])
        result = process(corner_walls + [twin], options=POOR, sink=sink)
        assert result.status == "ERROR"
        assert len(result.edges) == 1

    def test_duplicate_geometry(self, corner_walls, sink):
        twin = wall("twin", corner_walls[0].points)
        result = process(corner_walls + [twin], options=POOR, sink=sink)
        assert result.status == "ERROR"
        assert result.surface("twin") is None

    def test_degenerate_surface(self, corner_walls, sink):
        flat = wall("flat", [[0, 0, 0], [1, 0, 0], [2, 0, 0]])
        result = process(corner_walls + [flat], options=POOR, sink=sink)
        assert result.status == "ERROR"
        assert result.surface("wall S") is not None

    def test_ground_surfaces_are_not_derated(self, corner_walls, sink):
        for surface in corner_walls:
            surface.boundary = Boundary.GROUND
        result = process(corner_walls, options=POOR, sink=sink)
        assert result.surfaces == []
        assert result.edges[0].type is None

    def test_sink_is_optional(self, corner_walls):
        result = process(corner_walls, options=POOR)
        assert result.status == "INFO"


class TestInputValidation:
    """Tests for coordinate checks on input descriptors."""

    SQUARE = [[0, 0, 3], [0, 0, 0], [3, 0, 0], [3, 0, 3]]

    @pytest.mark.parametrize("points", [
        [[0, 0], [1, 0], [1, 1]],
        [[0, 0, 0], [1, 0, 0], [1, 1, 0, 1]],
    ])
    def test_points_need_three_coordinates(self, points):
        with pytest.raises(ValidationError, match="3 coordinates"):
            Surface(id="bad", type=SurfaceType.WALL, points=points)
        with pytest.raises(ValidationError, match="3 coordinates"):
            SubSurface(id="bad", points=points)
        with pytest.raises(ValidationError, match="3 coordinates"):
            Shade(id="bad", points=points)

    @pytest.mark.parametrize("transform", [
        [[1, 0, 0], [0, 1, 0], [0, 0, 1]],
        [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 0]],
        [[1, 0, 0, 0], [0, 1, 0], [0, 0, 1, 0], [0, 0, 0, 1]],
    ])
    def test_transform_must_be_4x4(self, transform):
        with pytest.raises(ValidationError, match="4x4"):
            Surface(id="bad", type=SurfaceType.WALL, points=self.SQUARE, transform=transform)
        with pytest.raises(ValidationError, match="4x4"):
            Shade(id="bad", points=self.SQUARE, transform=transform)

    def test_translated_surface(self, sink):
        moved = wall(
            "moved",
            self.SQUARE,
            transform=[[1, 0, 0, 10], [0, 1, 0, 0], [0, 0, 1, 0], [0, 0, 0, 1]],
        )
        assert moved.vertices[0].to_list() == pytest.approx([10, 0, 3])
        result = process([moved], options=POOR, sink=sink)
        assert result.surface("moved").net_area == pytest.approx(9.0)
