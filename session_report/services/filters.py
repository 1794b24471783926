"""Session attribute predicates.

Every predicate is pure and the active ones are AND-combined, so the
order in which they run never changes the result and filtering an
already filtered batch is a no-op.
"""
from typing import Callable, Iterable

from ..models.run import FilterCriteria
from ..models.sessions import SessionRecord

Predicate = Callable[[SessionRecord], bool]


def category_predicate(category: str) -> Predicate | None:
    if not category or category.lower() == "all":
        return None
    token = category.lower()
    return lambda r: token in r.media_types.lower()


def uri_predicate(fragment: str | None) -> Predicate | None:
    if not fragment:
        return None
    return lambda r: fragment in r.from_uri or fragment in r.to_uri


def client_version_predicate(fragment: str | None) -> Predicate | None:
    if not fragment:
        return None
    return lambda r: fragment in r.from_client_version or fragment in r.to_client_version


def completeness_predicate(include_incomplete: bool) -> Predicate | None:
    if include_incomplete:
        return None
    return lambda r: r.is_complete


def build_predicates(criteria: FilterCriteria) -> list[Predicate]:
    candidates = [
        category_predicate(criteria.category),
        uri_predicate(criteria.uri_filter),
        client_version_predicate(criteria.client_version_filter),
        completeness_predicate(criteria.include_incomplete),
    ]
    return [p for p in candidates if p is not None]


def apply_predicates(batch: Iterable[SessionRecord], predicates: list[Predicate]) -> list[SessionRecord]:
    return [r for r in batch if all(p(r) for p in predicates)]


def apply_filters(batch: Iterable[SessionRecord], criteria: FilterCriteria) -> list[SessionRecord]:
    return apply_predicates(batch, build_predicates(criteria))
