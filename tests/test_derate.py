"""
Tests for heat loss apportionment, derating and uprating.

Run with: pytest tests/test_derate.py -v
"""

import pytest

from thermal_bridging.bridging import ClassifiedEdge, EdgeRecord, KhiLibrary, LinkedSurface, LinkKind
from thermal_bridging.core import Construction, Layer, LayerKind, PointBridge, Severity
from thermal_bridging.derating import (
    MAX_CONDUCTIVITY,
    MIN_RESISTANCE,
    MIN_THICKNESS,
    HeatLossLedger,
    add_point_losses,
    apportion,
    derate,
    derate_layer,
    derating_ratio,
    insulating_layer,
    recipients,
    rsi,
    set_layer_resistance,
    uprate,
)
from thermal_bridging.geometry import Point3D, Vector3D

from conftest import massless_construction, wall


def classified_edge(model, links, psi=0.5, length=2.0, psi_type="corner"):
    """A classified edge of a given length linking the given surfaces."""
    a = model.vertex(Point3D(0, 0, 0))
    b = model.vertex(Point3D(length, 0, 0))
    record = EdgeRecord(edge=model.edge(a, b))
    for link in links:
        record.linked[link.surface_id] = link
    return ClassifiedEdge(record=record, type=psi_type, psi=psi)


def link(surface_id, kind=LinkKind.SURFACE, host_id=None):
    return LinkedSurface(surface_id, kind, None, Vector3D(0, -1, 0), host_id=host_id)


class TestDerate:
    """Tests for the derating formula."""

    def test_reference_case(self):
        # 20 m2 at R-2 with 5 W/K of bridging: 1/(0.5 + 0.25)
        assert derate(20, 2.0, 5.0) == pytest.approx(4 / 3)

    def test_no_heat_loss_is_identity(self):
        assert derate(20, 2.0, 0.0) == pytest.approx(2.0)

    def test_monotonic_in_heat_loss(self):
        values = [derate(10, 3.0, hl) for hl in (0, 1, 2, 5, 10)]
        assert values == sorted(values, reverse=True)

    @pytest.mark.parametrize("area,r,hl", [(0, 2, 1), (10, 0, 1), (10, 2, -1)])
    def test_invalid_inputs(self, area, r, hl):
        with pytest.raises(ValueError):
            derate(area, r, hl)

    def test_ratio(self):
        assert derating_ratio(2.0, 4 / 3) == pytest.approx(100 / 3)
        with pytest.raises(ValueError):
            derating_ratio(0, 1)


class TestUprate:
    """Tests for the inverse (uprating) problem."""

    def test_round_trip(self):
        area, ut, hl, film = 100.0, 0.3, 10.0, 0.3
        solved = uprate(area, ut, hl, film)
        u = 1 / (derate(area, solved.r_layer, hl) + film)
        assert u == pytest.approx(ut)
        assert solved.uo == pytest.approx(1 / (film + solved.r_layer))
        assert solved.uo < ut

    def test_no_room_for_insulation(self):
        with pytest.raises(ValueError, match="no room"):
            uprate(10, 3.0, 0, film_r=0.4)

    def test_unattainable(self):
        with pytest.raises(ValueError, match="unattainable"):
            uprate(10, 0.5, 100, film_r=0.0)

    def test_target_range(self):
        with pytest.raises(ValueError):
            uprate(10, 6.0, 1)


class TestLayers:
    """Tests for insulating layer detection and bounded rewriting."""

    def test_insulating_layer_is_most_resistive(self, layered):
        assert insulating_layer(layered) == 1

    def test_declared_index(self, layered):
        layered.insulating_layer = 2
        assert insulating_layer(layered) == 2
        layered.insulating_layer = 5
        assert insulating_layer(layered) is None

    def test_no_qualifying_layer(self):
        thin = Construction(name="foil", layers=[Layer(name="foil", thickness=0.002, conductivity=0.04)])
        assert insulating_layer(thin) is None
        negligible = Construction(
            name="film",
            layers=[Layer(name="film", kind=LayerKind.MASSLESS, resistance=MIN_RESISTANCE / 2)],
        )
        assert insulating_layer(negligible) is None

    def test_massless_rewrite(self):
        layer = Layer(name="ins", kind=LayerKind.MASSLESS, resistance=2.0)
        assert set_layer_resistance(layer, 1.5) == pytest.approx(1.5)
        assert layer.resistance == pytest.approx(1.5)
        assert set_layer_resistance(layer, 0.0) == pytest.approx(MIN_RESISTANCE)

    def test_standard_rewrite_changes_thickness(self):
        layer = Layer(name="wool", thickness=0.1, conductivity=0.04)
        assert set_layer_resistance(layer, 1.0) == pytest.approx(1.0)
        assert layer.thickness == pytest.approx(0.04)
        assert layer.conductivity == pytest.approx(0.04)

    def test_thin_layer_raises_conductivity(self):
        layer = Layer(name="wool", thickness=0.1, conductivity=0.04)
        assert set_layer_resistance(layer, 0.01) == pytest.approx(0.01)
        assert layer.thickness == pytest.approx(MIN_THICKNESS)
        assert layer.conductivity == pytest.approx(0.3)

    def test_bounded_layer_reports_residual(self):
        layer = Layer(name="wool", thickness=0.1, conductivity=0.04)
        outcome = derate_layer(layer, area=1.0, heat_loss=2000.0)
        assert outcome.clamped
        assert layer.thickness == pytest.approx(MIN_THICKNESS)
        assert layer.conductivity == pytest.approx(MAX_CONDUCTIVITY)
        assert outcome.residual > 900

    def test_derate_layer_in_place(self):
        layer = Layer(name="ins", kind=LayerKind.MASSLESS, resistance=2.0)
        outcome = derate_layer(layer, area=20.0, heat_loss=5.0)
        assert outcome.r_before == pytest.approx(2.0)
        assert outcome.r_after == pytest.approx(4 / 3)
        assert outcome.residual == pytest.approx(0.0)
        assert not outcome.clamped
        assert layer.r == pytest.approx(4 / 3)

    def test_construction_rsi(self, layered):
        assert rsi(massless_construction(2.0, film=0.3)) == pytest.approx(2.3)
        assert rsi(layered) == pytest.approx(0.15 + 0.1 / 0.9 + 0.1 / 0.04 + 0.0127 / 0.16)


class TestApportionment:
    """Tests for splitting edge losses over surfaces."""

    def test_even_split(self, model):
        edge = classified_edge(model, [link("a"), link("b")])
        ledger = apportion([edge], {"a", "b"})
        assert ledger.edge_loss("a") == pytest.approx(0.5)
        assert ledger.edge_loss("b") == pytest.approx(0.5)

    def test_only_deratable_surfaces_share(self, model):
        edge = classified_edge(model, [link("a"), link("b")])
        ledger = apportion([edge], {"a"})
        assert ledger.edge_loss("a") == pytest.approx(1.0)
        assert ledger.edge_loss("b") == 0.0

    def test_loss_is_conserved(self, model):
        edge = classified_edge(model, [link("a"), link("b"), link("c")], psi=0.7, length=3.0)
        ledger = apportion([edge], {"a", "b", "c"})
        shares = ledger.edge_shares(edge.record.id)
        assert sum(shares.values()) == pytest.approx(edge.loss)

    def test_unclassified_edges_are_ignored(self, model):
        edge = classified_edge(model, [link("a"), link("b")], psi_type=None)
        ledger = apportion([edge], {"a", "b"})
        assert ledger.total("a") == 0.0

    def test_host_pruned_when_neighbour_shares_opening_edge(self, model):
        edge = classified_edge(model, [
            link("window", LinkKind.HOLE, host_id="wall"),
            link("wall"),
            link("neighbour"),
        ])
        assert recipients(edge, {"wall", "neighbour"}) == ["neighbour"]
        assert recipients(edge, {"wall"}) == ["wall"]

    def test_ledger_accumulates_into_existing(self, model):
        ledger = HeatLossLedger()
        ledger.points["a"] = 1.0
        edge = classified_edge(model, [link("a"), link("b")])
        apportion([edge], {"a"}, ledger)
        assert ledger.total("a") == pytest.approx(2.0)


class TestPointBridges:
    """Tests for KHI point losses."""

    def test_point_losses(self, khi, sink):
        surface = wall("wall", [[0, 0, 3], [0, 0, 0], [3, 0, 0], [3, 0, 3]],
                       point_bridges=[PointBridge(khi="point", count=2)])
        ledger = add_point_losses([surface], khi, "poor (BETBG)", sink, HeatLossLedger())
        assert ledger.point_loss("wall") == pytest.approx(1.8)
        assert len(sink) == 0

    def test_unknown_point(self, sink):
        khi = KhiLibrary()
        surface = wall("wall", [[0, 0, 3], [0, 0, 0], [3, 0, 0], [3, 0, 3]],
                       point_bridges=[PointBridge(khi="column")])
        ledger = add_point_losses([surface], khi, "poor (BETBG)", sink, HeatLossLedger())
        assert ledger.point_loss("wall") == 0.0
        assert sink.status == Severity.ERROR
