"""
AWS provider adapter: Service Quotas, Auto Scaling Groups and tagged EC2 instances.
"""
from datetime import datetime
from typing import Dict, List, Optional, Sequence
import logging

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError, ClientError, ConnectTimeoutError, EndpointConnectionError, ReadTimeoutError
)

from .base import BaseProviderAdapter
from .models import FleetTarget, PowerState, PricingModel, QuotaSnapshot, TagSelector, TaggedResource
from ..core.exceptions import (
    GroupNotFound, ProviderError, ProviderTransient, QuotaUnavailable, ResourceActionFailed, ValidationError
)


logger = logging.getLogger(__name__)


# Service Quotas codes for EC2 vCPU limits, keyed by instance family
QUOTA_CODES: Dict[str, Dict[PricingModel, str]] = {
    'G': {
        PricingModel.ON_DEMAND: 'L-DB2E81BA',  # Running On-Demand G and VT instances
        PricingModel.SPOT: 'L-3819A6DF',       # All G and VT Spot Instance Requests
    },
    'P': {
        PricingModel.ON_DEMAND: 'L-417A185B',  # Running On-Demand P instances
        PricingModel.SPOT: 'L-7212CCBC',       # All P Spot Instance Requests
    },
    'Standard': {
        PricingModel.ON_DEMAND: 'L-1216C47A',  # Running On-Demand Standard instances
        PricingModel.SPOT: 'L-34B43A08',       # All Standard Spot Instance Requests
    },
}

DEFAULT_TAG_KEYS: Dict[str, str] = {
    'project': 'Project',
    'environment': 'Environment',
    'role': 'Role',
    'lifecycle_state': 'LifecycleState',
}

THROTTLING_CODES = {'Throttling', 'ThrottlingException', 'RequestLimitExceeded', 'TooManyRequestsException'}

_EC2_STATES = {
    'pending': PowerState.PENDING,
    'running': PowerState.RUNNING,
    'stopping': PowerState.STOPPING,
    'shutting-down': PowerState.STOPPING,
    'stopped': PowerState.STOPPED,
}


class AWSProviderAdapter(BaseProviderAdapter):
    """Provider adapter backed by boto3."""

    def __init__(
        self,
        session: boto3.Session,
        region: str,
        tag_keys: Optional[Dict[str, str]] = None,
        max_attempts: int = 3,
        connect_timeout: int = 10,
        read_timeout: int = 30
    ):
        """Initialize the adapter with an AWS session and region.

        Args:
            session: boto3 session (credentials are resolved by the caller)
            region: Region holding the quotas, group and instances
            tag_keys: Mapping from normalized tag names to EC2 tag keys
            max_attempts: botocore retry budget for transient faults
            connect_timeout: Socket connect timeout in seconds
            read_timeout: Socket read timeout in seconds
        """
        self.session = session
        self.region = region
        self.tag_keys = {**DEFAULT_TAG_KEYS, **(tag_keys or {})}
        self._client_config = BotoConfig(
            retries={'max_attempts': max_attempts, 'mode': 'standard'},
            connect_timeout=connect_timeout,
            read_timeout=read_timeout
        )
        self._clients = {}

    @property
    def provider_name(self) -> str:
        return 'aws'

    def client(self, service_name: str):
        """Cached boto3 client for a service, built on first use."""
        if service_name not in self._clients:
            self._clients[service_name] = self.session.client(
                service_name, region_name=self.region, config=self._client_config
            )
        return self._clients[service_name]

    def get_quota(self, family: str, pricing_model: PricingModel) -> QuotaSnapshot:
        quota_code = self._quota_code(family, pricing_model)
        quotas = self.client('service-quotas')

        try:
            try:
                response = quotas.get_service_quota(ServiceCode='ec2', QuotaCode=quota_code)
            except ClientError as e:
                if e.response['Error']['Code'] != 'NoSuchResourceException':
                    raise
                # Accounts that never changed a quota only have the AWS default
                response = quotas.get_aws_default_service_quota(ServiceCode='ec2', QuotaCode=quota_code)
        except (ClientError, BotoCoreError) as e:
            raise QuotaUnavailable(
                f"AWS quota {quota_code} ({family}, {pricing_model.value}) unavailable: {str(e)}",
                family=family,
                pricing_model=pricing_model,
                details=str(e)
            )

        limit = response['Quota'].get('Value') or 0
        logger.debug(f"Quota {quota_code} for {family}/{pricing_model.value} in {self.region}: {limit} vCPUs")

        return QuotaSnapshot(
            family=family,
            pricing_model=pricing_model,
            limit_vcpus=float(limit),
            as_of=datetime.utcnow()
        )

    def get_group_capacity(self, group_id: str) -> FleetTarget:
        try:
            response = self.client('autoscaling').describe_auto_scaling_groups(
                AutoScalingGroupNames=[group_id]
            )
        except (ClientError, BotoCoreError) as e:
            self._handle_aws_error(e, 'describe group', group_id)

        if not response['AutoScalingGroups']:
            raise GroupNotFound(group_id)

        asg = response['AutoScalingGroups'][0]
        return FleetTarget(
            group_id=group_id,
            desired_count=asg['DesiredCapacity'],
            min_count=asg['MinSize'],
            max_count=asg['MaxSize']
        )

    def set_group_capacity(self, group_id: str, desired: int, min_count: int) -> None:
        try:
            # MinSize and DesiredCapacity go in one call so the pair is validated together
            self.client('autoscaling').update_auto_scaling_group(
                AutoScalingGroupName=group_id,
                MinSize=min_count,
                DesiredCapacity=desired
            )
        except ClientError as e:
            message = e.response['Error'].get('Message', '')
            if e.response['Error']['Code'] == 'ValidationError' and 'not found' in message.lower():
                raise GroupNotFound(group_id, details=message)
            self._handle_aws_error(e, 'update group', group_id)
        except BotoCoreError as e:
            self._handle_aws_error(e, 'update group', group_id)

        logger.info(f"Set Auto Scaling Group {group_id} to desired={desired} min={min_count}")

    def list_tagged_resources(self, selector: TagSelector) -> List[TaggedResource]:
        filters = [
            {'Name': f"tag:{self.tag_keys[key]}", 'Values': [value]}
            for key, value in selector.as_tags().items()
        ]
        filters.append({
            'Name': 'instance-state-name',
            'Values': ['pending', 'running', 'stopping', 'stopped']
        })

        resources = []
        try:
            paginator = self.client('ec2').get_paginator('describe_instances')
            for page in paginator.paginate(Filters=filters):
                for reservation in page['Reservations']:
                    for instance in reservation['Instances']:
                        state = _EC2_STATES.get(instance['State']['Name'])
                        if state is None:
                            continue

                        resources.append(TaggedResource(
                            resource_id=instance['InstanceId'],
                            tags=self._normalize_tags(instance.get('Tags', [])),
                            power_state=state
                        ))
        except (ClientError, BotoCoreError) as e:
            self._handle_aws_error(e, 'discovery')

        return resources

    def set_power_state(self, resource_id: str, state: PowerState) -> None:
        ec2 = self.client('ec2')
        try:
            if state is PowerState.RUNNING:
                ec2.start_instances(InstanceIds=[resource_id])
            elif state is PowerState.STOPPED:
                ec2.stop_instances(InstanceIds=[resource_id])
            else:
                raise ValidationError(f"Cannot request power state {state.value} for {resource_id}")
        except (ClientError, BotoCoreError) as e:
            raise ResourceActionFailed(
                f"Failed to set EC2 instance {resource_id} to {state.value}: {str(e)}",
                resource_id=resource_id,
                details=str(e)
            )

    def list_offered_classes(self, names: Sequence[str]) -> List[str]:
        if not names:
            return []

        try:
            response = self.client('ec2').describe_instance_type_offerings(
                LocationType='region',
                Filters=[{'Name': 'instance-type', 'Values': list(names)}]
            )
        except (ClientError, BotoCoreError) as e:
            self._handle_aws_error(e, 'offering lookup')

        offered = {offering['InstanceType'] for offering in response.get('InstanceTypeOfferings', [])}
        return [name for name in names if name in offered]

    def request_quota_increase(self, family: str, pricing_model: PricingModel, desired_vcpus: int) -> Optional[str]:
        quota_code = self._quota_code(family, pricing_model)
        try:
            response = self.client('service-quotas').request_service_quota_increase(
                ServiceCode='ec2',
                QuotaCode=quota_code,
                DesiredValue=float(desired_vcpus)
            )
        except (ClientError, BotoCoreError) as e:
            self._handle_aws_error(e, 'quota increase request')

        request_id = response['RequestedQuota']['Id']
        logger.info(f"Requested {desired_vcpus} vCPUs for quota {quota_code}: request {request_id}")
        return request_id

    def _quota_code(self, family: str, pricing_model: PricingModel) -> str:
        try:
            return QUOTA_CODES[family][pricing_model]
        except KeyError:
            raise ValidationError(
                f"Unknown AWS instance family for quota lookup: {family}. "
                f"Expected one of: {', '.join(sorted(QUOTA_CODES))}"
            )

    def _normalize_tags(self, aws_tags: List[Dict[str, str]]) -> Dict[str, str]:
        """Convert EC2 Key/Value tags to normalized tag names."""
        raw = {tag['Key']: tag['Value'] for tag in aws_tags}
        tags = dict(raw)
        for key, aws_key in self.tag_keys.items():
            if aws_key in raw:
                tags[key] = raw[aws_key]
        return tags

    def _handle_aws_error(self, error: Exception, operation: str, resource_id: str = None) -> None:
        """Handle AWS API errors and convert to ProviderError.

        Raises:
            ProviderTransient: For throttling and connectivity failures that outlived retries
            ProviderError: For everything else
        """
        resource_context = f" for {resource_id}" if resource_id else ""
        error_message = f"AWS {operation} failed{resource_context}: {str(error)}"

        if isinstance(error, (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError)):
            raise ProviderTransient(error_message, details=str(error))
        if isinstance(error, ClientError) and error.response['Error']['Code'] in THROTTLING_CODES:
            raise ProviderTransient(error_message, details=str(error))
        raise ProviderError(error_message, details=str(error))
