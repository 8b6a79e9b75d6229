from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .. import settings
from ..adapters.api_football import ApiFootballAdapter
from ..api_wrapper import EnhancedApiWrapper
from ..constants import FLAG_CACHE_SIZE, LEAGUE_LOGO_CACHE_SIZE, TEAM_LOGO_CACHE_SIZE
from ..debug_cache import DebugCache
from ..image_cache import ImageCache
from ..logo_cache import LogoCache, LogoCacheConfig
from ..logo_manager import EnhancedLogoManager, install_timeout_noise_filter
from ..services.fixture_cache import FixtureCacheService
from ..storage import FixtureCacheStore

log = logging.getLogger(__name__)


@dataclass
class Services:
    """One shared instance of every cache per process."""

    debug: DebugCache
    image_cache: ImageCache
    team_logos: LogoCache
    league_logos: LogoCache
    flags: LogoCache
    logo_manager: EnhancedLogoManager
    api_wrapper: EnhancedApiWrapper
    store: FixtureCacheStore
    fixtures: FixtureCacheService
    upstream: ApiFootballAdapter
    _closed: bool = field(default=False, repr=False)

    def logo_caches(self) -> List[LogoCache]:
        return [self.team_logos, self.league_logos, self.flags]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.logo_manager.close()
        for cache in self.logo_caches():
            cache.close()
        self.store.close()


def build_logo_caches(background_cleanup: bool = True):
    caches = (
        LogoCache(LogoCacheConfig(max_size=TEAM_LOGO_CACHE_SIZE), name="team"),
        LogoCache(LogoCacheConfig(max_size=LEAGUE_LOGO_CACHE_SIZE), name="league"),
        LogoCache(LogoCacheConfig(max_size=FLAG_CACHE_SIZE), name="flag"),
    )
    if background_cleanup:
        for cache in caches:
            cache.start()
    return caches


def build_services(
    database_url: Optional[str] = None,
    api_base: Optional[str] = None,
    upstream: Optional[ApiFootballAdapter] = None,
    well_known_league_ids: Optional[Iterable[int]] = None,
    esports_terms: Optional[Iterable[str]] = None,
    background_cleanup: Optional[bool] = None,
    store: Optional[FixtureCacheStore] = None,
) -> Services:
    """Composition root; the app factory calls this once at startup."""
    if background_cleanup is None:
        background_cleanup = settings.LOGO_BACKGROUND_CLEANUP

    debug = DebugCache()
    image_cache = ImageCache()
    team_logos, league_logos, flags = build_logo_caches(background_cleanup)
    install_timeout_noise_filter()

    logo_manager = EnhancedLogoManager(
        team_cache=team_logos,
        league_cache=league_logos,
        flag_cache=flags,
        image_cache=image_cache,
        debug=debug,
        well_known_league_ids=(
            well_known_league_ids
            if well_known_league_ids is not None
            else settings.WELL_KNOWN_LEAGUE_IDS
        ),
    )
    api_wrapper = EnhancedApiWrapper(api_base or settings.CSSPORT_API_BASE, debug=debug)

    if store is None:
        store = FixtureCacheStore.from_url(
            database_url or settings.DATABASE_URL, echo=settings.DATABASE_ECHO
        )
    fixtures = FixtureCacheService(
        store,
        esports_terms=esports_terms if esports_terms is not None else settings.ESPORTS_TERMS,
    )

    log.info(
        "services built db=%s api_base=%s background_cleanup=%s",
        store.engine.url.render_as_string(hide_password=True),
        api_wrapper.base_url,
        background_cleanup,
    )
    return Services(
        debug=debug,
        image_cache=image_cache,
        team_logos=team_logos,
        league_logos=league_logos,
        flags=flags,
        logo_manager=logo_manager,
        api_wrapper=api_wrapper,
        store=store,
        fixtures=fixtures,
        upstream=upstream or ApiFootballAdapter(),
    )
