"""
RegistryEngine: the operation surface offered to an outer request-handling layer.

Wires the session provider, audit recorder, transactional coordinator, parcel
registry, certificate issuer and application workflow together. Certificate
issuance is internal to approval and is not exposed here.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from landregistry.application.registries.parcel_registry import ParcelRegistry
from landregistry.application.workflows.application_workflow import ApplicationWorkflow
from landregistry.application.workflows.certificate_issuer import CertificateIssuer
from landregistry.config.models import AppConfig
from landregistry.domain.application import Application
from landregistry.domain.audit import utcnow
from landregistry.domain.certificate import Certificate, VerificationResult
from landregistry.domain.parcel import Parcel
from landregistry.infrastructure.audit.sqlalchemy_audit_recorder import SqlAlchemyAuditRecorder
from landregistry.infrastructure.stores.models import Base
from landregistry.infrastructure.stores.sqlalchemy_db import SessionProvider
from landregistry.infrastructure.stores.unit_of_work import TransactionalCoordinator


class RegistryEngine:
    def __init__(
        self,
        provider: SessionProvider,
        config: Optional[AppConfig] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config or AppConfig.from_env()
        self.provider = provider
        self.recorder = SqlAlchemyAuditRecorder(provider)
        self.coordinator = TransactionalCoordinator(provider, self.recorder, clock=clock)

        certs = self.config.certificates
        self.parcels = ParcelRegistry(self.coordinator)
        self.certificates = CertificateIssuer(
            self.coordinator,
            number_prefix=certs.number_prefix,
            validity_years=certs.validity_years,
            verification_code_bytes=certs.verification_code_bytes,
        )
        self.applications = ApplicationWorkflow(
            self.coordinator,
            self.parcels,
            self.certificates,
            fee_schedule=self.config.fees.to_schedule(),
            processing_schedule=self.config.processing.to_schedule(),
            require_payment_for_approval=self.config.workflow.require_payment_for_approval,
        )

    @classmethod
    def from_config(
        cls,
        config: Optional[AppConfig] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> "RegistryEngine":
        config = config or AppConfig.from_env()
        provider = SessionProvider(
            config.database.url,
            lock_timeout_seconds=config.database.lock_timeout_seconds,
            echo=config.database.echo,
        )
        engine = cls(provider, config, clock=clock)
        if config.database.auto_create_schema:
            engine.init_schema()
        return engine

    def init_schema(self) -> None:
        Base.metadata.create_all(self.provider.engine)
        logger.debug(f"Schema ready on {self.provider.engine.dialect.name}")

    def close(self) -> None:
        self.provider.dispose()

    # ---- parcels ----

    def create_parcel(
        self,
        parcel_number: str,
        location: str,
        area: Any,
        land_type: Any,
        **kwargs: Any,
    ) -> Parcel:
        return self.parcels.create(parcel_number, location, area, land_type, **kwargs)

    def get_parcel(self, parcel_id: int) -> Parcel:
        return self.parcels.get(parcel_id)

    def search_parcels(self, **filters: Any) -> List[Parcel]:
        return self.parcels.search(**filters)

    # ---- applications ----

    def submit_application(
        self,
        applicant_id: str,
        parcel_id: int,
        application_type: Any,
        notes: Optional[str] = None,
        *,
        priority: Any = 1,
    ) -> Application:
        return self.applications.submit(applicant_id, parcel_id, application_type, notes, priority=priority)

    def transition_application(
        self,
        application_id: int,
        new_status: Any,
        reviewer_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Application:
        return self.applications.transition(application_id, new_status, reviewer_id, notes)

    def cancel_application(self, application_id: int, actor_id: Optional[str] = None) -> Application:
        return self.applications.cancel(application_id, actor_id)

    def record_payment(
        self,
        application_id: int,
        payment_status: Any,
        actor_id: Optional[str] = None,
        reference: Optional[str] = None,
    ) -> Application:
        return self.applications.record_payment(application_id, payment_status, actor_id, reference)

    def get_application(self, application_id: int) -> Application:
        return self.applications.get(application_id)

    def list_applications(self, **filters: Any) -> List[Application]:
        return self.applications.list(**filters)

    # ---- certificates ----

    def revoke_certificate(self, certificate_id: int, actor_id: str, reason: str) -> Certificate:
        return self.certificates.revoke(certificate_id, actor_id, reason)

    def verify_certificate(self, certificate_number: str, certificate_hash: str) -> VerificationResult:
        return self.certificates.verify(certificate_number, certificate_hash)

    def lookup_certificate(self, verification_code: str) -> VerificationResult:
        return self.certificates.lookup_by_verification_code(verification_code)

    def get_certificate(self, certificate_id: int) -> Certificate:
        return self.certificates.get(certificate_id)

    def get_certificate_for_application(self, application_id: int) -> Optional[Certificate]:
        return self.certificates.get_for_application(application_id)

    def list_certificates_for_applicant(self, applicant_id: str) -> List[Certificate]:
        return self.certificates.list_for_applicant(applicant_id)

    # ---- read-only aggregates ----

    def get_application_stats(self) -> Dict[str, Any]:
        return self.applications.stats()

    def get_parcel_stats(self) -> Dict[str, Any]:
        return self.parcels.stats()

    def get_certificate_stats(self) -> Dict[str, Any]:
        return self.certificates.stats()

    def list_audit_events(self, **filters: Any) -> List[dict]:
        return self.recorder.list_events(**filters)
