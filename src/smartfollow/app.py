"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass
from logging import getLogger
from signal import SIGINT, getsignal, signal
from typing import TYPE_CHECKING

from smartfollow.adapters.nip05 import Nip05Client
from smartfollow.adapters.nostr import NostrSdkSigner, RelayPool
from smartfollow.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from smartfollow.config import (
    CacheConfig,
    ConfigurationError,
    RelayConfig,
    default_config,
    get_nip05_config,
    get_storage_config,
    load_config_file,
    write_config_file,
)
from smartfollow.domain.errors import IdentifierParseError, InvalidIdentityError, SigningError
from smartfollow.domain.model import (
    ContactListState,
    ContactRecord,
    parse_identifier,
    parse_identity,
)
from smartfollow.domain.publishing import follow_list_differs, publish_follow_list
from smartfollow.domain.reconciliation import (
    DriftPolicy,
    FollowSetPolicy,
    ReconciliationEngine,
    ReconciliationSettings,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from contextlib import AbstractAsyncContextManager
    from pathlib import Path

    from smartfollow.config import ConfigFile, Nip05Config, StorageConfig
    from smartfollow.domain.ports import (
        ContactUnitOfWork,
        EventSigner,
        IdentifierLookup,
        PublishResult,
        RelayClient,
    )
    from smartfollow.domain.reconciliation import ReconciliationReport

type UnitOfWorkFactory = Callable[[], ContactUnitOfWork]
type RelayFactory = Callable[[RelayConfig], RelayClient]
type LookupFactory = Callable[[Nip05Config], AbstractAsyncContextManager[IdentifierLookup]]
type SignerFactory = Callable[[str], EventSigner]

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class FollowRunOptions:
    follow_set_policy: FollowSetPolicy = FollowSetPolicy.REPLACE
    drift_policy: DriftPolicy = DriftPolicy.FOLLOW_CURRENT
    max_concurrency: int | None = None
    timeout_seconds: float | None = None
    publish: bool = True
    dry_run: bool = False


@dataclass(slots=True)
class FollowRunResult:
    report: ReconciliationReport
    saved: bool
    published: PublishResult | None = None


def generate_config(*, storage: StorageConfig | None = None, force: bool = False) -> Path:
    """Write a template config file, refusing to overwrite unless ``force``."""

    effective_storage = storage or get_storage_config()
    return write_config_file(effective_storage.config_file(), default_config(), overwrite=force)


def load_follows(
    options: FollowRunOptions | None = None,
    *,
    storage: StorageConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    relay_factory: RelayFactory | None = None,
    lookup_factory: LookupFactory | None = None,
    signer_factory: SignerFactory | None = None,
) -> FollowRunResult:
    """Reconcile the stored list against relays and save it without publishing."""

    effective = options or FollowRunOptions()
    return update_follows(
        FollowRunOptions(
            follow_set_policy=effective.follow_set_policy,
            drift_policy=effective.drift_policy,
            max_concurrency=effective.max_concurrency,
            timeout_seconds=effective.timeout_seconds,
            publish=False,
            dry_run=effective.dry_run,
        ),
        storage=storage,
        unit_of_work_factory=unit_of_work_factory,
        relay_factory=relay_factory,
        lookup_factory=lookup_factory,
        signer_factory=signer_factory,
    )


def update_follows(
    options: FollowRunOptions | None = None,
    *,
    storage: StorageConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    relay_factory: RelayFactory | None = None,
    lookup_factory: LookupFactory | None = None,
    signer_factory: SignerFactory | None = None,
) -> FollowRunResult:
    """Reconcile, save and (when the list changed) publish the follow list."""

    return asyncio.run(
        run_follow_update(
            options or FollowRunOptions(),
            storage=storage,
            unit_of_work_factory=unit_of_work_factory,
            relay_factory=relay_factory,
            lookup_factory=lookup_factory,
            signer_factory=signer_factory,
        )
    )


async def run_follow_update(
    options: FollowRunOptions,
    *,
    storage: StorageConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    relay_factory: RelayFactory | None = None,
    lookup_factory: LookupFactory | None = None,
    signer_factory: SignerFactory | None = None,
    cancel: asyncio.Event | None = None,
) -> FollowRunResult:
    """Run one reconciliation, then save and publish its result.

    Without an explicit ``cancel`` event, SIGINT during verification stops new
    lookups and the partial result is still saved.
    """

    effective_storage = storage or get_storage_config()
    config = load_config_file(effective_storage.config_file())
    signer = _build_signer(config, signer_factory or NostrSdkSigner)

    if unit_of_work_factory is None:
        _ensure_database(effective_storage)
    effective_uow = unit_of_work_factory or SqlAlchemyUnitOfWork
    migrate_legacy_contacts(config, effective_uow)

    with effective_uow() as uow:
        prior = uow.contacts.load_state()
        content = uow.contacts.load_follow_list_content()

    relays = (relay_factory or RelayPool)(RelayConfig(urls=tuple(config.relays)))
    settings = build_settings(config, options)
    nip05_config = get_nip05_config(
        timeout_seconds=config.lookup.timeout_seconds,
        cache=_lookup_cache(config, effective_storage),
    )
    log.info(
        "Starting follow update for %s: follows=%d, policy=%s, drift=%s, publish=%s, dry_run=%s",
        signer.public_key(),
        len(prior),
        settings.follow_set_policy,
        settings.drift_policy,
        options.publish,
        options.dry_run,
    )

    async with (lookup_factory or _nip05_lookup)(nip05_config) as lookup:
        engine = ReconciliationEngine(relays=relays, lookup=lookup, settings=settings)
        stop = cancel if cancel is not None else asyncio.Event()
        with _cancel_on_interrupt(stop, install=cancel is None):
            report = await engine.run(signer.public_key(), prior, cancel=stop)
    for warning in report.warnings:
        log.warning(warning)
    if report.follow_list is not None:
        content = report.follow_list.content

    if options.dry_run:
        _log_delta(report)
        log.info("Dry run: nothing saved or published")
        return FollowRunResult(report=report, saved=False)

    with effective_uow() as uow:
        uow.contacts.replace_state(report.state)
        uow.contacts.save_follow_list_content(content)
        uow.commit()
    log.info("Saved %d follows (%d changes)", len(report.state), len(report.delta))
    _log_delta(report)

    published: PublishResult | None = None
    if options.publish:
        if follow_list_differs(report.state, report.follow_list):
            published = await publish_follow_list(
                report.state, signer=signer, relays=relays, content=content
            )
        else:
            log.info("Published follow list already matches; nothing to publish")
    return FollowRunResult(report=report, saved=True, published=published)


def show_contacts(
    *,
    storage: StorageConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ContactListState:
    if unit_of_work_factory is None:
        _ensure_database(storage or get_storage_config())
    with (unit_of_work_factory or SqlAlchemyUnitOfWork)() as uow:
        return uow.contacts.load_state()


def build_settings(config: ConfigFile, options: FollowRunOptions) -> ReconciliationSettings:
    return ReconciliationSettings(
        follow_set_policy=options.follow_set_policy,
        drift_policy=options.drift_policy,
        max_concurrency=options.max_concurrency or config.lookup.max_concurrency,
        verification_timeout=(
            options.timeout_seconds
            if options.timeout_seconds is not None
            else config.lookup.run_timeout_seconds
        ),
    )


def migrate_legacy_contacts(config: ConfigFile, unit_of_work_factory: UnitOfWorkFactory) -> int:
    """Import a contact list embedded in the config file into empty storage.

    Returns the number of imported records. Stored follows always win; a
    non-empty store is never touched.
    """

    legacy = config.contact_list
    if legacy is None or not (legacy.nip05_contacts or legacy.unwashed_masses):
        return 0

    records: dict[str, ContactRecord] = {}
    for raw_key in legacy.unwashed_masses:
        try:
            identity = parse_identity(raw_key)
        except InvalidIdentityError:
            log.warning("Skipping legacy contact with invalid key %r", raw_key)
            continue
        records[identity] = ContactRecord(identity=identity)
    for raw_identifier, raw_key in sorted(legacy.nip05_contacts.items()):
        try:
            identity = parse_identity(raw_key)
            identifier = parse_identifier(raw_identifier)
        except (InvalidIdentityError, IdentifierParseError) as exc:
            log.warning("Skipping legacy contact %r: %s", raw_identifier, exc)
            continue
        records[identity] = ContactRecord(identity=identity, identifier=identifier)

    with unit_of_work_factory() as uow:
        if len(uow.contacts.load_state()) > 0:
            return 0
        uow.contacts.replace_state(ContactListState(records.values()))
        uow.commit()
    log.info("Imported %d contacts from the config file", len(records))
    return len(records)


def _build_signer(config: ConfigFile, factory: SignerFactory) -> EventSigner:
    try:
        return factory(config.privkey)
    except SigningError as exc:
        raise ConfigurationError(f"Configured privkey is not a valid key: {exc}") from exc


def _ensure_database(storage: StorageConfig) -> None:
    if not is_started():
        startup(database_uri=storage.database_uri())


def _nip05_lookup(config: Nip05Config) -> Nip05Client:
    return Nip05Client(config=config)


def _log_delta(report: ReconciliationReport) -> None:
    for change in report.delta.changes.values():
        record = change.after or change.before
        identifier = record.identifier if record is not None else None
        if change.drifted_to is not None:
            log.info(
                "%s %s (%s) -> %s", change.kind, change.identity, identifier, change.drifted_to
            )
        else:
            log.info("%s %s (%s)", change.kind, change.identity, identifier)


def _lookup_cache(config: ConfigFile, storage: StorageConfig) -> CacheConfig:
    ttl = config.lookup.cache_ttl_seconds
    if not ttl:
        return CacheConfig(enabled=False)
    return CacheConfig(
        backend="sqlite",
        sqlite_path=str(storage.http_cache_path()),
        default_ttl_seconds=ttl,
    )


@contextmanager
def _cancel_on_interrupt(cancel: asyncio.Event, *, install: bool = True) -> Iterator[None]:
    """Route SIGINT to ``cancel`` on the running loop while the block runs."""

    installed = False
    previous = getsignal(SIGINT)
    loop = asyncio.get_running_loop()
    if install:
        try:
            loop.add_signal_handler(SIGINT, request_cancel, cancel)
        except (NotImplementedError, RuntimeError) as exc:
            log.debug("SIGINT stays with the default handler: %s", exc)
        else:
            installed = True
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(SIGINT)
            if previous is not None:
                signal(SIGINT, previous)


def request_cancel(cancel: asyncio.Event) -> None:
    if not cancel.is_set():
        log.warning("Interrupted: no new lookups, keeping the results gathered so far")
    cancel.set()
