"""
Collision detection manager.

A :class:`CDManager` keeps a list of registered link sets and, for each of
them, the link sets it has to be checked against. Queries run over these
pairs through one collision checker instance.

Missing inputs on the query paths are reported through sentinel return
values, never exceptions: boolean queries return ``False`` and distance
queries return ``-1.0``. A manager without any pair reports an infinite
distance.
"""

import math
from typing import TYPE_CHECKING, Optional, Sequence, Union

from jointspace.collision.checker import CollisionChecker, DistanceResult
from jointspace.core.logging import get_logger
from jointspace.model.node_sets import LinkSet
from jointspace.model.nodes import ModelLink

if TYPE_CHECKING:
    from jointspace.model.model import Model

_logger = get_logger(__name__)

MISSING_DISTANCE = -1.0

CollisionInput = Union[LinkSet, ModelLink, Sequence[ModelLink], "Model"]


class CDManager:
    """
    Registers groups of collidable bodies and answers collision and distance
    queries over them.

    Args:
        collision_checker: Engine instance all registered geometry must live
            in. Required; there is no process-wide default engine.

    Example:
        >>> cdm = CDManager(checker)
        >>> cdm.add_collision_model(robot_links)
        >>> cdm.add_collision_model(obstacles)
        >>> cdm.is_in_collision()
        False
    """

    def __init__(self, collision_checker: Optional[CollisionChecker]):
        self._checker = collision_checker
        self._models: list[LinkSet] = []
        self._pairs: dict[LinkSet, list[LinkSet]] = {}

    @property
    def collision_checker(self) -> Optional[CollisionChecker]:
        return self._checker

    @property
    def link_sets(self) -> list[LinkSet]:
        return list(self._models)

    @property
    def pairs(self) -> dict[LinkSet, list[LinkSet]]:
        return {k: list(v) for k, v in self._pairs.items()}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_collision_model(self, item: Optional[CollisionInput]) -> Optional[LinkSet]:
        """
        Register a collision group and pair it with every group already known.

        Accepts a link set, a single link, a list of links or a whole model
        (whose collision links are used). Adding a group that is already
        registered, by identity or as a single-link set wrapping the same
        link, changes nothing.

        Returns:
            The registered link set, or None when nothing was given
        """
        link_set = self._as_link_set(item)
        if link_set is None:
            return None

        if self._checker is not None and link_set.collision_checker not in (None, self._checker):
            _logger.warning(
                "collision_checker_mismatch",
                link_set=link_set.name,
                expected=self._checker.name,
                found=link_set.collision_checker.name,
            )

        existing = self._find(link_set)
        if existing is not None:
            return existing

        for other in list(self._models):
            self.add_collision_model_pair(other, link_set)
        if self._find(link_set) is None:
            self._models.append(link_set)
        return link_set

    def add_collision_model_pair(self, a: Optional[CollisionInput], b: Optional[CollisionInput]) -> None:
        """Check ``a`` against ``b``. Both sides are registered as models if needed."""
        set_a = self._as_link_set(a)
        set_b = self._as_link_set(b)
        if set_a is None or set_b is None:
            return

        set_a = self._find(set_a) or self._append(set_a)
        set_b = self._find(set_b) or self._append(set_b)
        partners = self._pairs.setdefault(set_a, [])
        if not any(p is set_b for p in partners):
            partners.append(set_b)

    def has_link_set(self, link_set: LinkSet) -> bool:
        return any(m is link_set for m in self._models)

    def has_link(self, link: ModelLink) -> bool:
        """True if the link is registered as a single-link group."""
        return any(len(m) == 1 and m[0] is link for m in self._models)

    def _append(self, link_set: LinkSet) -> LinkSet:
        self._models.append(link_set)
        return link_set

    def _find(self, link_set: LinkSet) -> Optional[LinkSet]:
        for m in self._models:
            if m is link_set:
                return m
            if len(m) == 1 and len(link_set) == 1 and m[0] is link_set[0]:
                return m
        return None

    def _as_link_set(self, item: Optional[CollisionInput]) -> Optional[LinkSet]:
        if item is None:
            return None
        if isinstance(item, LinkSet):
            return item
        if isinstance(item, ModelLink):
            return LinkSet(item.name, item.model, [item])
        if isinstance(item, (list, tuple)):
            if not item:
                return None
            return LinkSet(item[0].name, item[0].model, list(item))
        return item.get_link_set()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_in_collision(
        self,
        link_set: Optional[LinkSet] = None,
        sets: Optional[Sequence[LinkSet]] = None,
    ) -> bool:
        """
        Collision query.

        * ``is_in_collision()`` tests every registered pair.
        * ``is_in_collision(x)`` tests ``x`` against every other registered
          model (not only its pairs).
        * ``is_in_collision(x, sets)`` tests ``x`` against the given sets.

        Short-circuits on the first collision.
        """
        if self._checker is None:
            _logger.warning("collision_query_without_checker")
            return False

        if link_set is None:
            if sets is not None:
                _logger.warning("collision_query_missing_link_set")
                return False
            for first, partners in self._pairs.items():
                if self._collides(first, partners):
                    return True
            return False

        if sets is None:
            sets = [m for m in self._models if m is not link_set]
        return self._collides(link_set, sets)

    def _collides(self, link_set: LinkSet, sets: Sequence[LinkSet]) -> bool:
        for other in sets:
            if self._checker.check_collision(link_set, other):
                return True
        return False

    def get_distance(
        self,
        link_set: Optional[LinkSet] = None,
        sets: Optional[Sequence[LinkSet]] = None,
    ) -> float:
        """
        Minimum signed distance over all registered pairs, over ``link_set``
        against all other models, or over ``link_set`` against ``sets``.
        """
        return self.get_distance_details(link_set, sets).distance

    def get_distance_details(
        self,
        link_set: Optional[LinkSet] = None,
        sets: Optional[Sequence[LinkSet]] = None,
    ) -> DistanceResult:
        """
        Like :meth:`get_distance` but also returns the closest points and
        triangle ids of the minimizing pair. Ties keep the first pair in
        registration order.
        """
        if self._checker is None:
            _logger.warning("distance_query_without_checker")
            return DistanceResult(distance=MISSING_DISTANCE)

        if link_set is None:
            if sets is not None:
                _logger.warning("distance_query_missing_link_set")
                return DistanceResult(distance=MISSING_DISTANCE)
            best = DistanceResult(distance=math.inf)
            for first, partners in self._pairs.items():
                result = self._min_distance(first, partners)
                if result.distance < best.distance:
                    best = result
            return best

        if sets is None:
            sets = [m for m in self._models if m is not link_set]
        return self._min_distance(link_set, sets)

    def _min_distance(self, link_set: LinkSet, sets: Sequence[LinkSet]) -> DistanceResult:
        best = DistanceResult(distance=math.inf)
        for other in sets:
            result = self._checker.calculate_distance(link_set, other)
            if result.distance < best.distance:
                best = result
        return best

    def __repr__(self) -> str:
        return f"CDManager(models={len(self._models)}, pairs={sum(len(v) for v in self._pairs.values())})"
