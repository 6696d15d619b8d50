"""
Unit tests for the family constructors. No R needed: families are plain
values until a model is fitted.
"""
import pytest


class TestBrmsfamily:
    """Generic constructor."""

    def test_name_is_lowercased(self):
        from brmskit.brms_functions.families import brmsfamily

        fam = brmsfamily("Gaussian")
        assert fam.family == "gaussian"
        assert fam.link is None

    @pytest.mark.parametrize("bad", ["", None, 3])
    def test_invalid_name(self, bad):
        from brmskit.brms_functions.families import brmsfamily

        with pytest.raises(ValueError, match="non-empty string"):
            brmsfamily(bad)

    def test_links_and_options_are_split(self):
        """link_<dpar> arguments become aux links, the rest are options"""
        from brmskit.brms_functions.families import brmsfamily

        fam = brmsfamily("cumulative", "probit", link_disc="log", threshold="equidistant")

        assert fam.link == "probit"
        assert fam.aux_links == (("disc", "log"),)
        assert fam.options == (("threshold", "equidistant"),)

    def test_none_values_dropped(self):
        from brmskit.brms_functions.families import gaussian

        fam = gaussian(link_sigma=None)
        assert fam.aux_links == ()
        assert fam.options == ()


class TestNamedFamilies:
    """Named constructors map onto brms family names."""

    @pytest.mark.parametrize("ctor,name", [
        ("gaussian", "gaussian"),
        ("student", "student"),
        ("poisson", "poisson"),
        ("Gamma", "gamma"),
        ("Beta", "beta"),
        ("sratio", "sratio"),
        ("categorical", "categorical"),
        ("hurdle_poisson", "hurdle_poisson"),
        ("zero_inflated_negbinomial", "zero_inflated_negbinomial"),
        ("zero_one_inflated_beta", "zero_one_inflated_beta"),
    ])
    def test_family_names(self, ctor, name):
        from brmskit.brms_functions import families

        fam = getattr(families, ctor)()
        assert fam.family == name
        assert not fam.is_mixture

    def test_binomial_link(self):
        from brmskit.brms_functions.families import binomial

        assert binomial("probit").link == "probit"

    def test_ordinal_threshold_option(self):
        from brmskit.brms_functions.families import cumulative

        fam = cumulative("logit", threshold="equidistant")
        assert dict(fam.options) == {"threshold": "equidistant"}

    def test_categorical_refcat(self):
        from brmskit.brms_functions.families import categorical

        assert dict(categorical(refcat="a").options) == {"refcat": "a"}

    def test_families_are_hashable_values(self):
        """Equal arguments give equal families"""
        from brmskit.brms_functions.families import negbinomial

        assert negbinomial() == negbinomial()
        assert len({negbinomial(), negbinomial("log")}) == 2


class TestMixture:
    """Finite mixture families."""

    def test_nmix_repeats_components(self):
        from brmskit.brms_functions.families import gaussian, mixture

        mix = mixture(gaussian(), nmix=3)

        assert mix.is_mixture
        assert mix.nmix == 3
        assert all(c == gaussian() for c in mix.components)

    def test_mixed_components_and_names(self):
        """Components may be given by name"""
        from brmskit.brms_functions.families import gaussian, mixture

        mix = mixture("gaussian", "exponential", order="none")

        assert [c.family for c in mix.components] == ["gaussian", "exponential"]
        assert mix.components[0] == gaussian()
        assert mix.order == "none"

    def test_nmix_list(self):
        from brmskit.brms_functions.families import gaussian, mixture, student

        mix = mixture(gaussian(), student(), nmix=[2, 1])
        assert [c.family for c in mix.components] == ["gaussian", "gaussian", "student"]

    def test_nmix_list_length_mismatch(self):
        from brmskit.brms_functions.families import gaussian, mixture

        with pytest.raises(ValueError, match="one entry per family"):
            mixture(gaussian(), nmix=[1, 2])

    def test_needs_two_components(self):
        from brmskit.brms_functions.families import gaussian, mixture

        with pytest.raises(ValueError, match="at least two components"):
            mixture(gaussian())

    def test_needs_a_family(self):
        from brmskit.brms_functions.families import mixture

        with pytest.raises(ValueError, match="at least one component"):
            mixture()

    def test_nested_mixture_rejected(self):
        from brmskit.brms_functions.families import gaussian, mixture

        inner = mixture(gaussian(), nmix=2)
        with pytest.raises(ValueError, match="cannot be mixtures"):
            mixture(inner, gaussian())

    def test_nonpositive_nmix(self):
        from brmskit.brms_functions.families import gaussian, mixture

        with pytest.raises(ValueError, match="positive"):
            mixture(gaussian(), nmix=0)
