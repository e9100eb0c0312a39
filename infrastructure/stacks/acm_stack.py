"""DNS-validated ACM certificate for the public ALB domain."""

from __future__ import annotations

from typing import Any, Optional

from aws_cdk import aws_certificatemanager as acm, aws_route53 as route53
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.stacks.base import PlatformStack


class AcmStack(PlatformStack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: EnvironmentConfig,
        *,
        domain_name: str,
        hosted_zone_name: str,
        hosted_zone_id: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(scope, construct_id, environment, config, **kwargs)

        zone = self._hosted_zone(hosted_zone_name, hosted_zone_id)
        self.certificate = acm.Certificate(
            self,
            "AlbCert",
            domain_name=domain_name,
            validation=acm.CertificateValidation.from_dns(zone),
        )

        self._publish(
            "certificate_arn",
            self.certificate.certificate_arn,
            "CertificateArn",
            f"ACM certificate for {domain_name}",
        )

    def _hosted_zone(self, zone_name: str, zone_id: Optional[str]) -> route53.IHostedZone:
        """Import the zone by id when known; otherwise fall back to a context lookup.

        ``from_lookup`` needs a concrete account/region on the stack.
        """
        if zone_id:
            return route53.HostedZone.from_hosted_zone_attributes(
                self,
                "HostedZone",
                hosted_zone_id=zone_id,
                zone_name=zone_name,
            )
        return route53.HostedZone.from_lookup(self, "HostedZone", domain_name=zone_name)
