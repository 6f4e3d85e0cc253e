"""
Reconciliation of managed applications against the remote platform.

A managed application (ServiceInstance) owns one remote application and one
remote subscription per desired API. Every remote mutation is mirrored by a
local record, and a failure part way through a multi-step operation runs
compensating actions so that no remote artifact is left without its record
(and vice versa).

Operations return a BrokerResult. Local lookups that come up empty are
ordinary outcomes (NOT_FOUND, ALREADY_EXISTS, CONFLICT); remote and storage
errors surface as FAILURE carrying the triggering error's code.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from ..apim import APIIdentifier, APIMClient, ApplicationMetadata, SubscriptionRequest
from ..constants import APPLICATION_PREFIX
from ..db import Bind, ServiceInstance, Subscription
from ..exceptions import BaseError, ErrorCode, ValidationError, duplicate, not_found
from ..repositories import RecordStore
from ..schemas import APIReference, ProvisionContext, ServiceParameters
from ..utils.hash_utils import fingerprint, same_api_set
from ..utils.logger import get_logger
from .broker_result import BrokerResult

APIKey = Tuple[str, str]
ResolvedAPI = Tuple[APIReference, str]


def _api_key(api: APIReference) -> APIKey:
    return api.name, api.version


def _missing(error: BaseError) -> BrokerResult:
    return BrokerResult.not_found(
        error.message, error_code=error.error_code.value, context=dict(error.context)
    )


def _conflicting(error: BaseError) -> BrokerResult:
    return BrokerResult.conflict(
        error.message, error_code=error.error_code.value, context=dict(error.context)
    )


class ReconciliationService:
    """Provision, update, deprovision, bind and unbind managed applications."""

    def __init__(self, apim_client: APIMClient, store: RecordStore, logger=None):
        self.apim_client = apim_client
        self.store = store
        self.logger = logger or get_logger()

    # Provision

    def provision(
        self, instance_id: str, desired_spec: ServiceParameters, context: ProvisionContext
    ) -> BrokerResult:
        """
        Create the remote application, its keys and subscriptions.

        A repeated request with the same APIs, organization and space yields
        ALREADY_EXISTS without any remote call; any other request for an
        existing instance id yields CONFLICT.
        """
        parameter_hash = fingerprint(desired_spec, context.org_id, context.space_id)
        application_name = APPLICATION_PREFIX + instance_id

        try:
            found, instance = self.store.retrieve_by_key(ServiceInstance, id=instance_id)
            if found:
                return self._existing_instance_outcome(
                    instance, desired_spec, context, parameter_hash
                )

            # Lookup failures abort here, before anything exists remotely
            resolved = self._resolve(desired_spec.sorted_apis())

            try:
                application_id = self.apim_client.create_application(application_name)
            except BaseError as e:
                if e.error_code == ErrorCode.CONFLICT:
                    return _conflicting(
                        duplicate("Application", application_name=application_name)
                    )
                raise

            application = self._with_keys(application_id, application_name)
        except BaseError as e:
            return BrokerResult.failure(e, context={"instance_id": instance_id})

        try:
            subscriptions = self._subscribe(instance_id, application.id, resolved)
            instance = ServiceInstance(
                id=instance_id,
                application_id=application.id,
                application_name=application.name,
                org_id=context.org_id,
                space_id=context.space_id,
                consumer_key=application.keys.consumer_key,
                consumer_secret=application.keys.consumer_secret,
                parameter_hash=parameter_hash,
            )
            self.store.store(instance)
        except BaseError as e:
            self._revert_application(application.id)
            return BrokerResult.failure(e, context={"instance_id": instance_id})

        try:
            self.store.bulk_insert(subscriptions)
        except BaseError as e:
            self._revert_subscriptions(subscriptions)
            self._revert_instance_record(instance_id)
            self._revert_application(application.id)
            return BrokerResult.failure(e, context={"instance_id": instance_id})

        self.logger.info(
            "Provisioned service instance",
            extra={
                "instance_id": instance_id,
                "application_id": application.id,
                "subscription_count": len(subscriptions),
            },
        )
        return BrokerResult.success(dashboard_url=application.dashboard_url)

    def _existing_instance_outcome(
        self,
        instance: ServiceInstance,
        desired_spec: ServiceParameters,
        context: ProvisionContext,
        parameter_hash: str,
    ) -> BrokerResult:
        _, subscriptions = self.store.retrieve_all_by_key(
            Subscription, service_instance_id=instance.id
        )
        existing_apis = [
            APIReference(name=s.api_name, version=s.api_version) for s in subscriptions
        ]

        identical = (
            instance.parameter_hash == parameter_hash
            and instance.org_id == context.org_id
            and instance.space_id == context.space_id
            and same_api_set(existing_apis, desired_spec.apis)
        )
        if identical:
            self.logger.info(
                "Service instance already provisioned", extra={"instance_id": instance.id}
            )
            return BrokerResult.already_exists(
                dashboard_url=self.apim_client.application_dashboard_url(
                    instance.application_name
                )
            )

        return _conflicting(duplicate("ServiceInstance", instance_id=instance.id))

    def _with_keys(self, application_id: str, application_name: str) -> ApplicationMetadata:
        try:
            keys = self.apim_client.generate_keys(application_id)
        except BaseError:
            self._revert_application(application_id)
            raise

        return ApplicationMetadata(
            id=application_id,
            name=application_name,
            keys=keys,
            dashboard_url=self.apim_client.application_dashboard_url(application_name),
        )

    # Update

    def update(self, instance_id: str, desired_spec: ServiceParameters) -> BrokerResult:
        """
        Converge the instance's subscriptions onto ``desired_spec``.

        Added APIs are subscribed first, then removed APIs are unsubscribed
        one at a time. If any removal fails, the subscriptions added by this
        call are removed again before the failure is reported.
        """
        try:
            found, instance = self.store.retrieve_by_key(ServiceInstance, id=instance_id)
            if not found:
                return _missing(not_found("ServiceInstance", instance_id=instance_id))

            _, current = self.store.retrieve_all_by_key(
                Subscription, service_instance_id=instance_id
            )
        except BaseError as e:
            return BrokerResult.failure(e, context={"instance_id": instance_id})

        existing: Dict[APIKey, Subscription] = {
            (s.api_name, s.api_version): s for s in current
        }
        desired: Dict[APIKey, APIReference] = {
            _api_key(api): api for api in desired_spec.sorted_apis()
        }
        added = [desired[key] for key in sorted(desired.keys() - existing.keys())]
        removed = [existing[key] for key in sorted(existing.keys() - desired.keys())]

        self.logger.debug(
            "Computed subscription changes",
            extra={
                "instance_id": instance_id,
                "added": [str(api) for api in added],
                "removed": [f"{s.api_name}:{s.api_version}" for s in removed],
            },
        )

        added_rows: List[Subscription] = []
        try:
            if added:
                added_rows = self._subscribe(
                    instance_id, instance.application_id, self._resolve(added)
                )
                try:
                    self.store.bulk_insert(added_rows)
                except BaseError:
                    self._revert_subscriptions(added_rows)
                    raise
        except BaseError as e:
            return BrokerResult.failure(e, context={"instance_id": instance_id})

        try:
            for subscription in removed:
                self.apim_client.unsubscribe(subscription.id)
                self.store.delete_by_key(Subscription, id=subscription.id)
        except BaseError as e:
            self._revert_added_subscriptions(added_rows)
            return BrokerResult.failure(e, context={"instance_id": instance_id})

        try:
            self.store.update(
                instance,
                parameter_hash=fingerprint(desired_spec, instance.org_id, instance.space_id),
            )
        except BaseError as e:
            return BrokerResult.failure(e, context={"instance_id": instance_id})

        self.logger.info(
            "Updated service instance",
            extra={
                "instance_id": instance_id,
                "added_count": len(added),
                "removed_count": len(removed),
            },
        )
        return BrokerResult.success()

    # Deprovision

    def deprovision(self, instance_id: str) -> BrokerResult:
        """
        Delete the remote application, then every local record of the instance.

        The remote side removes the application's subscriptions with it. A
        failure after the remote deletion is reported but never undone.
        """
        try:
            found, instance = self.store.retrieve_by_key(ServiceInstance, id=instance_id)
            if not found:
                return _missing(not_found("ServiceInstance", instance_id=instance_id))

            try:
                self.apim_client.delete_application(instance.application_id)
            except BaseError as e:
                if e.error_code != ErrorCode.NOT_FOUND:
                    raise
                self.logger.warning(
                    "Remote application already deleted",
                    extra={"instance_id": instance_id, "application_id": instance.application_id},
                )

            self.store.delete_by_key(Subscription, service_instance_id=instance_id)
            self.store.delete_by_key(Bind, service_instance_id=instance_id)
            self.store.delete_by_key(ServiceInstance, id=instance_id)
        except BaseError as e:
            return BrokerResult.failure(e, context={"instance_id": instance_id})

        self.logger.info(
            "Deprovisioned service instance",
            extra={"instance_id": instance_id, "application_id": instance.application_id},
        )
        return BrokerResult.success()

    # Bind / unbind

    def bind(
        self, instance_id: str, binding_id: str, platform_app_id: Optional[str] = None
    ) -> BrokerResult:
        """
        Hand out the instance's application credentials.

        A binding without ``platform_app_id`` stands for a service key.
        Repeating a bind with the same instance and app is ALREADY_EXISTS;
        reusing the binding id for anything else is CONFLICT.
        """
        platform_app_id = platform_app_id or ""
        try:
            found, instance = self.store.retrieve_by_key(ServiceInstance, id=instance_id)
            if not found:
                return _missing(not_found("ServiceInstance", instance_id=instance_id))

            credentials = self._credentials(instance)

            bound, existing = self.store.retrieve_by_key(Bind, id=binding_id)
            if bound:
                same_attributes = existing.service_instance_id == instance_id
                # Service keys carry no app id
                if platform_app_id:
                    same_attributes = (
                        same_attributes and existing.platform_app_id == platform_app_id
                    )
                if same_attributes:
                    return BrokerResult.already_exists(credentials=credentials)
                return BrokerResult.conflict(
                    f"Binding {binding_id} already exists with different attributes",
                    context={"binding_id": binding_id},
                )

            self.store.store(
                Bind(
                    id=binding_id,
                    service_instance_id=instance_id,
                    platform_app_id=platform_app_id,
                )
            )
        except BaseError as e:
            return BrokerResult.failure(e, context={"binding_id": binding_id})

        self.logger.info(
            "Created binding", extra={"instance_id": instance_id, "binding_id": binding_id}
        )
        return BrokerResult.success(credentials=credentials)

    def unbind(self, instance_id: str, binding_id: str) -> BrokerResult:
        try:
            found, _ = self.store.retrieve_by_key(Bind, id=binding_id)
            if not found:
                return _missing(not_found("Bind", binding_id=binding_id))
            self.store.delete_by_key(Bind, id=binding_id)
        except BaseError as e:
            return BrokerResult.failure(e, context={"binding_id": binding_id})

        self.logger.info(
            "Deleted binding", extra={"instance_id": instance_id, "binding_id": binding_id}
        )
        return BrokerResult.success()

    @staticmethod
    def _credentials(instance: ServiceInstance) -> Dict[str, str]:
        return {
            "ApplicationName": instance.application_name,
            "ConsumerKey": instance.consumer_key or "",
            "ConsumerSecret": instance.consumer_secret or "",
        }

    # Remote subscriptions

    def _resolve(self, apis: Sequence[APIReference]) -> List[ResolvedAPI]:
        """Look up the platform id of every API. Read-only."""
        return [
            (api, self.apim_client.search_api_by_name_version(api.name, api.version))
            for api in apis
        ]

    def _subscribe(
        self, instance_id: str, application_id: str, resolved: Sequence[ResolvedAPI]
    ) -> List[Subscription]:
        """
        Subscribe to every resolved API in one call and build the matching
        records. Nothing is stored here.

        Names and versions on the records come from the requested APIs; the
        store's identifier only contributes the provider.
        """
        if not resolved:
            return []

        requested = {APIIdentifier.qualify(api.name, api.version): api for api, _ in resolved}
        subscription_requests = [
            SubscriptionRequest(api_identifier=api_id, application_id=application_id)
            for _, api_id in resolved
        ]
        responses = self.apim_client.create_multiple_subscriptions(subscription_requests)

        rows = []
        try:
            for response in responses:
                identifier = APIIdentifier.parse(response.api_identifier)
                api = requested.get(identifier.qualified_name)
                if api is None:
                    raise ValidationError(
                        f"Subscription for unrequested API: {response.api_identifier}",
                        field="apiIdentifier",
                        error_code=ErrorCode.INVALID_FORMAT,
                        subscription_id=response.subscription_id,
                    )
                rows.append(
                    Subscription(
                        id=response.subscription_id,
                        application_id=application_id,
                        api_name=api.name,
                        api_version=api.version,
                        user=identifier.user,
                        service_instance_id=instance_id,
                    )
                )
        except BaseError:
            for response in responses:
                self._unsubscribe_quietly(response.subscription_id)
            raise
        return rows

    # Compensation. Failures here are logged and do not replace the
    # error that triggered the compensation.

    def _revert_application(self, application_id: str) -> None:
        try:
            self.apim_client.delete_application(application_id)
        except BaseError as e:
            self.logger.error(
                "Unable to remove the application during compensation",
                extra={"application_id": application_id, "error_id": e.error_id},
            )

    def _revert_subscriptions(self, subscriptions: Sequence[Subscription]) -> None:
        for subscription in subscriptions:
            self._unsubscribe_quietly(subscription.id)

    def _revert_added_subscriptions(self, subscriptions: Sequence[Subscription]) -> None:
        for subscription in subscriptions:
            # A live remote subscription keeps its record
            if not self._unsubscribe_quietly(subscription.id):
                continue
            try:
                self.store.delete_by_key(Subscription, id=subscription.id)
            except BaseError as e:
                self.logger.error(
                    "Unable to delete subscription record during compensation",
                    extra={"subscription_id": subscription.id, "error_id": e.error_id},
                )

    def _revert_instance_record(self, instance_id: str) -> None:
        try:
            self.store.delete_by_key(ServiceInstance, id=instance_id)
        except BaseError as e:
            self.logger.error(
                "Unable to delete service instance record during compensation",
                extra={"instance_id": instance_id, "error_id": e.error_id},
            )

    def _unsubscribe_quietly(self, subscription_id: str) -> bool:
        try:
            self.apim_client.unsubscribe(subscription_id)
        except BaseError as e:
            self.logger.error(
                "Unable to unsubscribe during compensation",
                extra={"subscription_id": subscription_id, "error_id": e.error_id},
            )
            return False
        return True
