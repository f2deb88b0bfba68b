"""
FastAPI dependency providers for the delivery engine's collaborators.

Each request gets explicitly constructed instances; tests override the
providers with in-memory fakes.
"""
from datetime import timedelta

from fastapi import Depends
from sqlalchemy.orm import sessionmaker

from .config import Settings, get_settings
from .database import get_session_factory
from .delivery.blob_store import BlobStore, StorageBlobStore
from .delivery.executor import DeliveryExecutor
from .delivery.externalizer import ImageExternalizer
from .delivery.groups import SqlGroupDirectory
from .delivery.recipients import GroupDirectory, RecipientResolver
from .delivery.service import BroadcastService
from .delivery.store import BroadcastStore
from .delivery.transport import EmailTransport, ResendTransport
from .worker.reconciler import StuckSendingReconciler
from .worker.scheduler import SchedulerPoller


def get_transport(settings: Settings = Depends(get_settings)) -> EmailTransport:
    return ResendTransport(
        api_key=settings.resend_api_key,
        api_url=settings.resend_api_url,
        timeout=settings.transport_timeout_seconds,
    )


def get_blob_store(settings: Settings = Depends(get_settings)) -> BlobStore:
    return StorageBlobStore(
        base_url=settings.storage_url,
        service_key=settings.storage_service_key,
        bucket=settings.storage_bucket,
        timeout=settings.upload_timeout_seconds,
    )


def get_store(session_factory: sessionmaker = Depends(get_session_factory)) -> BroadcastStore:
    return BroadcastStore(session_factory)


def get_group_directory(session_factory: sessionmaker = Depends(get_session_factory)) -> GroupDirectory:
    return SqlGroupDirectory(session_factory)


def get_executor(
    store: BroadcastStore = Depends(get_store),
    transport: EmailTransport = Depends(get_transport),
    blob_store: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
) -> DeliveryExecutor:
    return DeliveryExecutor(
        store=store,
        transport=transport,
        externalizer=ImageExternalizer(blob_store, upload_timeout=settings.upload_timeout_seconds),
        sender=settings.resend_from_email,
        transport_timeout=settings.transport_timeout_seconds,
    )


def get_broadcast_service(
    store: BroadcastStore = Depends(get_store),
    directory: GroupDirectory = Depends(get_group_directory),
    executor: DeliveryExecutor = Depends(get_executor),
) -> BroadcastService:
    return BroadcastService(store=store, resolver=RecipientResolver(directory), executor=executor)


def get_poller(
    store: BroadcastStore = Depends(get_store),
    executor: DeliveryExecutor = Depends(get_executor),
) -> SchedulerPoller:
    return SchedulerPoller(store=store, executor=executor)


def build_reconciler(store: BroadcastStore, settings: Settings) -> StuckSendingReconciler:
    return StuckSendingReconciler(store, grace=timedelta(minutes=settings.stuck_sending_grace_minutes))


def get_reconciler(
    store: BroadcastStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> StuckSendingReconciler:
    return build_reconciler(store, settings)
