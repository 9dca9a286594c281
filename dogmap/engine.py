"""Engine facade: the single owner of query, results and selection state."""
from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import replace
from typing import Any, Dict, List, Optional

from . import config
from .clustering import Marker, cluster_markers
from .data_source import EntityDataSource
from .discovery import count_by_kind, discover, normalize_search_text
from .geo import in_bbox, region_bbox
from .location import LocationProvider, resolve_viewer_location
from .models import Coordinate, DiscoverableEntity, DiscoveryQuery, ViewerLocation
from .normalizer import normalize_animals, normalize_emergencies
from .refresh import DiscoveryFailed, DiscoveryState, RefreshCoordinator, RefreshTicket
from .selection import SelectionMachine, SelectionState, WorkflowSubmissionFailed

logger = logging.getLogger(__name__)


class DiscoveryEngine:
    def __init__(
        self,
        data_source: EntityDataSource,
        location_provider: Optional[LocationProvider] = None,
        default_location: Optional[Coordinate] = None,
        query: Optional[DiscoveryQuery] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.data_source = data_source
        self.location_provider = location_provider
        self.default_location = default_location
        self.query = query if query is not None else DiscoveryQuery()
        self.viewer: Optional[ViewerLocation] = None
        self.used_fallback_location = False
        self.recent_searches: List[str] = []
        self.coordinator = RefreshCoordinator(self.run_cycle, executor=executor)
        self.selection = SelectionMachine(data_source.submit_workflow)

    # Discovery

    def run_cycle(self, viewer: ViewerLocation, query: DiscoveryQuery) -> List[DiscoverableEntity]:
        """Fetch, normalize, filter and rank one discovery cycle."""
        wants_animals = query.category_filter != "emergencies"
        wants_emergencies = query.category_filter in ("all", "emergencies")

        raw_animals = self.data_source.fetch_animals() if wants_animals else []
        raw_emergencies = self.data_source.fetch_emergencies() if wants_emergencies else []

        rejections: Dict[str, int] = {}
        entities: List[DiscoverableEntity] = []
        entities.extend(normalize_animals(raw_animals, rejections))
        entities.extend(normalize_emergencies(raw_emergencies, rejections))
        results = discover(entities, viewer, query, rejections)
        logger.info(
            "Discovery cycle: animals=%s emergencies=%s normalized=%s kept=%s rejected=%s",
            len(raw_animals),
            len(raw_emergencies),
            len(entities),
            len(results),
            rejections,
        )
        return results

    def locate(self) -> ViewerLocation:
        viewer, used_fallback = resolve_viewer_location(
            self.location_provider, default=self.default_location
        )
        self.viewer = viewer
        self.used_fallback_location = used_fallback
        return viewer

    def refresh(self) -> RefreshTicket:
        if self.viewer is None:
            self.locate()
        return self.coordinator.refresh(self.viewer, self.query)

    def retry(self) -> Optional[RefreshTicket]:
        return self.coordinator.retry()

    def set_viewer(self, viewer: ViewerLocation) -> RefreshTicket:
        self.viewer = viewer
        return self.refresh()

    def set_query(self, **changes: Any) -> RefreshTicket:
        self.query = replace(self.query, **changes)
        if "search_text" in changes:
            self.remember_search(changes["search_text"])
        return self.refresh()

    def remember_search(self, text: Optional[str]) -> None:
        needle = (text or "").strip()
        if not needle:
            return
        key = normalize_search_text(needle)
        recent = [s for s in self.recent_searches if normalize_search_text(s) != key]
        self.recent_searches = [needle, *recent][: config.RECENT_SEARCHES_MAX]

    @property
    def state(self) -> DiscoveryState:
        return self.coordinator.state

    @property
    def results(self) -> List[DiscoverableEntity]:
        return list(self.coordinator.state.results)

    @property
    def error(self) -> Optional[DiscoveryFailed]:
        return self.coordinator.state.error

    def counts(self) -> Dict[str, int]:
        return count_by_kind(self.results)

    def clusters(self, radius_deg: Optional[float] = None) -> List[Marker]:
        return cluster_markers(self.results, radius_deg)

    def visible_results(self) -> List[DiscoverableEntity]:
        if self.viewer is None:
            return []
        bbox = region_bbox(self.viewer)
        return [e for e in self.results if in_bbox(e.coordinate, bbox)]

    def find(self, entity_id: str, kind: Optional[str] = None) -> Optional[DiscoverableEntity]:
        for entity in self.coordinator.state.results:
            if entity.id == str(entity_id) and (kind is None or entity.kind == kind):
                return entity
        return None

    # Selection

    @property
    def selection_state(self) -> SelectionState:
        return self.selection.state

    def select(self, entity: DiscoverableEntity) -> SelectionState:
        return self.selection.select(entity)

    def select_by_id(self, entity_id: str, kind: Optional[str] = None) -> SelectionState:
        entity = self.find(entity_id, kind)
        if entity is None:
            raise KeyError(f"No discovered entity with id {entity_id}")
        return self.selection.select(entity)

    def close(self) -> SelectionState:
        return self.selection.close()

    def request_action(self) -> SelectionState:
        return self.selection.request_action()

    def give_feedback(self) -> SelectionState:
        return self.selection.give_feedback()

    def cancel(self) -> SelectionState:
        return self.selection.cancel()

    def submit(self, payload: Any) -> Optional[WorkflowSubmissionFailed]:
        return self.selection.submit(payload)

