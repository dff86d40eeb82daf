"""
Tests for PSI and KHI coefficient libraries.

Run with: pytest tests/test_psi.py -v
"""

import pytest

from thermal_bridging.bridging import (
    BUILTIN_PSI_SETS,
    PSI_TYPES,
    IncompletePsiSetError,
    KhiLibrary,
    PsiLibrary,
    PsiSetError,
)
from thermal_bridging.bridging.psi import split_variant


COMPLETE = {
    "rimjoist": 0.3,
    "parapet": 0.4,
    "fenestration": 0.2,
    "corner": 0.1,
    "balcony": 0.6,
    "party": 0.5,
    "grade": 0.45,
}


class TestTypeCatalogue:
    """Tests for PSI type names."""

    def test_variants(self):
        assert "cornerconcave" in PSI_TYPES
        assert "doorsillconvex" in PSI_TYPES
        assert "transitionconvex" not in PSI_TYPES
        assert "joint" in PSI_TYPES

    def test_split_variant(self):
        assert split_variant("cornerconvex") == ("corner", "convex")
        assert split_variant("skylightheadconcave") == ("skylighthead", "concave")
        assert split_variant("grade") == ("grade", "")


class TestBuiltinSets:
    """Tests for the built-in PSI sets."""

    def test_every_builtin_set_is_complete(self, psi):
        for name in BUILTIN_PSI_SETS:
            assert psi.is_complete(name), name

    def test_ashrae_sets_present(self, psi):
        assert "90.1.22|steel.m|default" in psi
        assert "90.1.22|wood.fr|unmitigated" in psi

    def test_poor_values(self, psi):
        assert psi.value("poor (BETBG)", "corner") == pytest.approx(0.85)
        assert psi.value("poor (BETBG)", "balcony") == pytest.approx(1.0)
        assert psi.value("poor (BETBG)", "transition") == 0.0


class TestResolution:
    """Tests for type inheritance."""

    def test_variant_inherits_base(self, psi):
        assert psi.resolve("poor (BETBG)", "cornerconvex") == "corner"
        assert psi.value("poor (BETBG)", "cornerconvex") == pytest.approx(0.85)

    def test_subtypes_inherit_fenestration(self, psi):
        assert psi.resolve("regular (BETBG)", "head") == "fenestration"
        assert psi.resolve("regular (BETBG)", "doorsillconcave") == "door"
        assert psi.resolve("regular (BETBG)", "skylightjamb") == "skylight"

    def test_parapet_and_roof_stand_in_for_each_other(self):
        lib = PsiLibrary(builtins=False)
        lib.append("roof only", {**{k: v for k, v in COMPLETE.items() if k != "parapet"}, "roof": 0.7})
        assert lib.resolve("roof only", "parapetconvex") == "roof"

    def test_specific_variant_wins(self):
        lib = PsiLibrary(builtins=False)
        lib.append("variants", {**COMPLETE, "cornerconvex": 0.9, "headconcave": 0.25})
        assert lib.value("variants", "cornerconvex") == pytest.approx(0.9)
        assert lib.value("variants", "cornerconcave") == pytest.approx(0.1)
        assert lib.value("variants", "doorheadconcave") == pytest.approx(0.2)

    def test_missing_chain_returns_none(self):
        lib = PsiLibrary(builtins=False)
        lib.append("bare", {"grade": 0.5})
        assert lib.value("bare", "corner") is None

    def test_unknown_type_raises(self, psi):
        with pytest.raises(PsiSetError):
            psi.resolve("poor (BETBG)", "chimney")

    def test_unknown_set_raises(self, psi):
        with pytest.raises(PsiSetError):
            psi.value("imaginary", "corner")


class TestCustomSets:
    """Tests for host-supplied PSI sets."""

    def test_append_defaults(self):
        lib = PsiLibrary(builtins=False)
        lib.append("custom", COMPLETE)
        values = lib.get("custom")
        assert values["joint"] == 0.0
        assert values["transition"] == 0.0
        assert values["ceiling"] == 0.0
        assert lib.is_complete("custom")

    def test_duplicate_name_rejected(self, psi):
        with pytest.raises(PsiSetError):
            psi.append("poor (BETBG)", COMPLETE)

    def test_unknown_type_rejected(self, psi):
        with pytest.raises(PsiSetError):
            psi.append("bad", {"chimney": 1.0})

    def test_negative_value_rejected(self, psi):
        with pytest.raises(PsiSetError):
            psi.append("bad", {**COMPLETE, "corner": -0.1})

    def test_incomplete_set(self, psi):
        psi.append("partial", {k: v for k, v in COMPLETE.items() if k not in ("balcony", "corner")})
        assert not psi.is_complete("partial")
        with pytest.raises(IncompletePsiSetError) as exc_info:
            psi.require_complete("partial")
        assert "balcony" in exc_info.value.missing
        assert any("corner" in m for m in exc_info.value.missing)

    def test_corner_variants_complete_the_set(self, psi):
        values = {k: v for k, v in COMPLETE.items() if k != "corner"}
        psi.append("split corners", {**values, "cornerconcave": 0.1, "cornerconvex": 0.2})
        assert psi.is_complete("split corners")


class TestKhiLibrary:
    """Tests for point conductance sets."""

    def test_builtin_values(self, khi):
        assert khi.value("poor (BETBG)", "point") == pytest.approx(0.9)
        assert khi.value("efficient (BETBG)", "point") == pytest.approx(0.15)

    def test_unknown_point(self, khi):
        assert khi.value("poor (BETBG)", "column") is None

    def test_append(self):
        lib = KhiLibrary(builtins=False)
        lib.append("columns", {"steel column": 0.5})
        assert lib.value("columns", "steel column") == pytest.approx(0.5)
        with pytest.raises(PsiSetError):
            lib.append("columns", {})
