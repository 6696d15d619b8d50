"""
brmskit.types.formula_dsl

Pure-Python description of a brms formula. Nothing in here touches R; the
construct is rendered into an R ``brmsformula`` only when a model is fitted
(see `brmskit.brms_functions.formula._execute_formula`).
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Sequence, Union, get_args

__all__ = ["Primitive", "Family", "FormulaPart", "FormulaConstruct", "Node"]

_FORMULA_FUNCTION_WHITELIST = Literal[
    "bf",
    "lf",
    "nlf",
    "acformula",
    "set_rescor",
    "set_mecor",
    "set_nl",
]


@dataclass(frozen=True)
class Family:
    """
    Response distribution and link function(s) of a brms model.

    Instances are created by the family constructors in
    `brmskit.brms_functions.families` (``gaussian()``, ``poisson()``,
    ``mixture(...)``...) and can be passed as ``family=`` to ``brm`` or added
    to a formula, as in ``bf("y ~ x") + skew_normal()``.

    Attributes
    ----------
    family : str
        brms family name, e.g. "gaussian", "sratio", "mixture".
    link : str, optional
        Link of the main parameter. ``None`` uses the brms default.
    aux_links : tuple of (dpar, link) pairs
        Links of auxiliary parameters, e.g. ``(("sigma", "log"),)``.
    components : tuple of Family
        Mixture components (mixture families only).
    order : str or bool, optional
        Ordering constraint for mixture components.
    options : tuple of (name, value) pairs
        Further ``brms::brmsfamily()`` arguments such as ``threshold`` or
        ``refcat``.
    """

    family: str
    link: str | None = None
    aux_links: tuple[tuple[str, str], ...] = ()
    components: tuple["Family", ...] = ()
    order: str | bool | None = None
    options: tuple[tuple[str, Any], ...] = ()

    @property
    def is_mixture(self) -> bool:
        return self.family == "mixture"

    @property
    def nmix(self) -> int:
        return len(self.components)

    def __add__(self, other) -> "FormulaConstruct":
        return FormulaConstruct._formula_parse(self) + other

    def __radd__(self, other) -> "FormulaConstruct":
        return FormulaConstruct._formula_parse(other) + self

    def __str__(self) -> str:
        if self.is_mixture:
            inner = ", ".join(str(c) for c in self.components)
            return f"mixture({inner})"
        if self.link is None or self.link == "identity":
            return f"{self.family}()"
        return f"{self.family}(link='{self.link}')"


Primitive = Union[int, float, str, bool, None, "FormulaConstruct", "FormulaPart", Family]


@dataclass
class FormulaPart:
    _fun: _FORMULA_FUNCTION_WHITELIST
    _args: Sequence[Primitive]
    _kwargs: Mapping[str, Primitive] = field(default_factory=dict)

    def __post_init__(self):
        if self._fun not in get_args(_FORMULA_FUNCTION_WHITELIST):
            raise ValueError(
                f"FormulaPart._fun must be one of {get_args(_FORMULA_FUNCTION_WHITELIST)!r}, "
                f"got {self._fun!r}"
            )

        if not isinstance(self._args, list):
            raise TypeError(
                f"FormulaPart._args must be a list, got {type(self._args).__name__}"
            )

        if not isinstance(self._kwargs, dict):
            raise TypeError(
                f"FormulaPart._kwargs must be a dict, got {type(self._kwargs).__name__}"
            )

    def __str__(self) -> str:
        args = ", ".join(
            repr(a) if isinstance(a, str) else str(a) for a in self._args
        )
        kwargs = ", ".join(
            f"{k}={v!r}" if isinstance(v, str) else f"{k}={v}"
            for k, v in self._kwargs.items()
            if v is not None
        )
        inner = ", ".join(x for x in (args, kwargs) if x)
        return f"{self._fun}({inner})"

    def __repr__(self) -> str:
        return self.__str__()


Leaf = Union[FormulaPart, Family]
Node = Union[FormulaPart, Family, list["Node"]]
Other = Union[str, "FormulaConstruct", FormulaPart, Family]
Summand = tuple[Leaf, ...]


@dataclass
class FormulaConstruct:
    """
    Composable formula made of `FormulaPart` and `Family` leaves.

    Parts added one at a time belong to the same summand and are combined
    left to right in R (``bf(...) + lf(...) + gaussian()``). Adding a
    construct that already holds several parts keeps it grouped, which is how
    multivariate models with one family per response are written::

        (bf("tarsus ~ sex") + skew_normal()) + (bf("back ~ tarsus") + gaussian())
    """

    _parts: list[Node]

    @classmethod
    def _formula_parse(cls, obj: Other) -> "FormulaConstruct":
        if isinstance(obj, FormulaConstruct):
            return obj
        if isinstance(obj, (FormulaPart, Family)):
            return FormulaConstruct(_parts=[obj])
        if isinstance(obj, str):
            part = FormulaPart(_fun="bf", _args=[obj], _kwargs={})
            return FormulaConstruct(_parts=[part])
        raise TypeError(
            f"Cannot parse object of type {type(obj)!r} into FormulaConstruct"
        )

    def __add__(self, other: Other) -> "FormulaConstruct":
        if isinstance(other, (FormulaPart, Family, str)):
            other = FormulaConstruct._formula_parse(other)

        if not isinstance(other, FormulaConstruct):
            raise TypeError(
                "When adding values to a formula, they must be formulas, "
                "families or strings parseable to a formula"
            )

        if len(other._parts) <= 1:
            return FormulaConstruct(_parts=self._parts + other._parts)
        return FormulaConstruct(_parts=[self._parts, other._parts])

    def __radd__(self, other: Other) -> "FormulaConstruct":
        # "y ~ x" + something
        return self._formula_parse(other) + self

    def iter_summands(self) -> Iterator[Summand]:
        """
        Yield tuples of leaves that belong to the same arithmetic group.

        Example:
            f = bf("y ~ x") + lf("sigma ~ z") + gaussian()
            g = f + f

            list(g.iter_summands()) ->
            [
              (bf_yx, lf_sigma, gaussian),
              (bf_yx, lf_sigma, gaussian),
            ]
        """

        def _groups(node: Node) -> Iterator[list[Leaf]]:
            if isinstance(node, (FormulaPart, Family)):
                yield [node]
                return

            if isinstance(node, list):
                # A list holding lists is a "+" between grouped sub-expressions
                if any(isinstance(child, list) for child in node):
                    for child in node:
                        yield from _groups(child)
                else:
                    out: list[Leaf] = []
                    for child in node:
                        if not isinstance(child, (FormulaPart, Family)):
                            raise TypeError(
                                f"Unexpected leaf node type in FormulaConstruct: {type(child)!r}"
                            )
                        out.append(child)
                    yield out
                return

            raise TypeError(f"Unexpected node type in FormulaConstruct: {type(node)!r}")

        for group in _groups(self._parts):
            yield tuple(group)

    def __iter__(self) -> Iterator[Summand]:
        return self.iter_summands()

    def iterate(self) -> Iterator[Leaf]:
        """Yield leaves in left-to-right addition order."""

        def _walk(node: Node) -> Iterator[Leaf]:
            if isinstance(node, (FormulaPart, Family)):
                yield node
            elif isinstance(node, list):
                for child in node:
                    yield from _walk(child)
            else:
                raise TypeError(
                    f"Unexpected node type in FormulaConstruct: {type(node)!r}"
                )

        for root in self._parts:
            yield from _walk(root)

    def families(self) -> list[Family]:
        """Families attached to the formula, in order."""
        return [leaf for leaf in self.iterate() if isinstance(leaf, Family)]

    def __str__(self) -> str:
        return self._pretty(self._parts)

    def _pretty(self, node, _outer=True) -> str:
        if isinstance(node, (FormulaPart, Family)):
            return str(node)

        if isinstance(node, list):
            rendered = [self._pretty(child, _outer=False) for child in node]
            if len(rendered) == 1:
                return rendered[0]
            inner = " + ".join(rendered)
            return inner if _outer else f"({inner})"

        raise TypeError(f"Unexpected node type {type(node)!r} in pretty-printer")

    def __repr__(self) -> str:
        return self.__str__()
