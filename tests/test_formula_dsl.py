"""
Unit tests for the pure-Python formula description (no R needed).
"""
import pytest


class TestFormulaPart:
    """Validation and rendering of single formula parts."""

    def test_unknown_function_rejected(self):
        """Only brms formula functions may be used as parts"""
        from brmskit.types.formula_dsl import FormulaPart

        with pytest.raises(ValueError, match="must be one of"):
            FormulaPart(_fun="system", _args=["y ~ x"], _kwargs={})

    def test_args_must_be_list(self):
        from brmskit.types.formula_dsl import FormulaPart

        with pytest.raises(TypeError, match="_args must be a list"):
            FormulaPart(_fun="bf", _args=("y ~ x",), _kwargs={})

    def test_kwargs_must_be_dict(self):
        from brmskit.types.formula_dsl import FormulaPart

        with pytest.raises(TypeError, match="_kwargs must be a dict"):
            FormulaPart(_fun="bf", _args=["y ~ x"], _kwargs=[("nl", True)])

    def test_str_renders_call(self):
        """Strings are quoted, other values are rendered as is"""
        from brmskit.brms_functions.formula import bf

        f = bf("y ~ a1 - a2^x", "a1 + a2 ~ 1", nl=True)
        assert str(f) == "bf('y ~ a1 - a2^x', 'a1 + a2 ~ 1', nl=True)"

    def test_str_skips_unset_kwargs(self):
        """Keyword arguments left at None are not rendered"""
        from brmskit.brms_functions.formula import lf

        f = lf("sigma ~ z", dpar="sigma")
        assert str(f) == "lf('sigma ~ z', dpar='sigma')"


class TestFormulaConstruct:
    """Composition of formula parts and families with +."""

    def test_string_is_parsed_as_bf(self):
        from brmskit.types.formula_dsl import FormulaConstruct

        f = FormulaConstruct._formula_parse("y ~ x")
        assert str(f) == "bf('y ~ x')"

    def test_parse_rejects_other_types(self):
        from brmskit.types.formula_dsl import FormulaConstruct

        with pytest.raises(TypeError):
            FormulaConstruct._formula_parse(42)

    def test_add_family_and_string(self):
        """A family can be added on either side of a formula string"""
        from brmskit.brms_functions.families import gaussian

        f = "y ~ x" + gaussian()
        assert str(f) == "bf('y ~ x') + gaussian()"
        assert f.families() == [gaussian()]

    def test_chained_parts_form_one_summand(self):
        """Parts added one at a time belong to one summand"""
        from brmskit.brms_functions.families import gaussian
        from brmskit.brms_functions.formula import bf, lf

        f = bf("y ~ x") + lf("sigma ~ z", dpar="sigma") + gaussian()
        summands = list(f.iter_summands())

        assert len(summands) == 1, f"Expected one summand, got {summands}"
        assert len(summands[0]) == 3
        assert summands[0][2] == gaussian()

    def test_grouped_constructs_stay_grouped(self):
        """(bf + family) + (bf + family) keeps one family per response"""
        from brmskit.brms_functions.families import gaussian, skew_normal
        from brmskit.brms_functions.formula import bf

        f = (bf("tarsus ~ sex") + skew_normal()) + (bf("back ~ tarsus") + gaussian())
        summands = list(f)

        assert len(summands) == 2
        assert [s[1] for s in summands] == [skew_normal(), gaussian()]
        assert str(f) == (
            "(bf('tarsus ~ sex') + skew_normal()) + (bf('back ~ tarsus') + gaussian())"
        )

    def test_iterate_yields_leaves_in_order(self):
        from brmskit.brms_functions.families import gaussian, poisson
        from brmskit.brms_functions.formula import bf
        from brmskit.types.formula_dsl import Family, FormulaPart

        f = (bf("a ~ 1") + gaussian()) + (bf("b ~ 1") + poisson())
        leaves = list(f.iterate())

        assert [type(x) for x in leaves] == [FormulaPart, Family, FormulaPart, Family]
        assert f.families() == [gaussian(), poisson()]

    def test_add_rejects_numbers(self):
        from brmskit.brms_functions.formula import bf

        with pytest.raises(TypeError, match="must be formulas"):
            bf("y ~ x") + 1

    def test_setters_are_parts(self):
        """set_rescor and friends render like brms calls"""
        from brmskit.brms_functions.formula import bf, set_rescor

        f = bf("y1 ~ x") + bf("y2 ~ x") + set_rescor(False)
        assert str(f) == "bf('y1 ~ x') + bf('y2 ~ x') + set_rescor(rescor=False)"


class TestFamilyRendering:
    """str() of Family values."""

    @pytest.mark.parametrize("link,expected", [
        (None, "poisson()"),
        ("identity", "poisson()"),
        ("sqrt", "poisson(link='sqrt')"),
    ])
    def test_link_rendering(self, link, expected):
        from brmskit.brms_functions.families import poisson

        assert str(poisson(link)) == expected

    def test_mixture_rendering(self):
        from brmskit.brms_functions.families import gaussian, mixture

        mix = mixture(gaussian(), nmix=2)
        assert str(mix) == "mixture(gaussian(), gaussian())"
