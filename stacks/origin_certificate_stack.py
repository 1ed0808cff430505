import hashlib
import os
import re
from typing import Dict
from aws_cdk import (
    Stack,
    Duration,
    CfnOutput,
    CustomResource,
    BundlingOptions,
    aws_certificatemanager as acm,
    aws_iam as iam,
    aws_lambda as lambda_,
    custom_resources as cr,
)
from constructs import Construct

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

CERTIFICATE_RESOURCE_TYPE = "Custom::OriginCertificate"
LOOKUP_RESOURCE_TYPE = "Custom::OriginCertificateLookup"

# Never ship local secrets, build output or tests inside the Lambda asset
ASSET_EXCLUDES = [
    ".env",
    ".git",
    ".venv",
    "cdk.out",
    "tests",
    "**/__pycache__",
    "*.egg-info",
    ".pytest_cache",
    "*.md",
]

BUNDLE_COMMAND = (
    "pip install -r lambda/origin_certificate/requirements.txt -t /asset-output"
    " && cp -r origin_cert /asset-output/"
    " && cp lambda/origin_certificate/main.py /asset-output/"
)


def construct_name(domain_name: str) -> str:
    """
    Builds a stable, unique construct id fragment from a domain,
    e.g. 'api.example.com' -> 'ApiExampleCom' + first 8 hex chars of its sha256.
    """
    parts = [p.capitalize() for p in re.split(r"[^A-Za-z0-9]+", domain_name) if p]
    prefix = "Wildcard" if domain_name.startswith("*") else ""
    digest = hashlib.sha256(domain_name.encode("utf-8")).hexdigest()[:8]
    return prefix + "".join(parts) + digest


class OriginCertificateStack(Stack):
    """
    Imports Cloudflare Origin Certificates into ACM through a Lambda-backed custom resource:
    1. Provisioning Lambda (find-or-create / verify / retire / lookup).
    2. Custom resource Provider wired to the Lambda.
    3. One Custom::OriginCertificate per managed domain, one lookup per read-only domain.
    Note: deploy in us-east-1 when the certificates are meant for CloudFront.
    """
    def __init__(self, scope: Construct, construct_id: str, config, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # =================================================================
        # 1. PROVISIONING FUNCTION
        # =================================================================
        environment = {"CERTIFICATE_REGION": config.region}
        if config.cloudflare_api_token:
            environment["CLOUDFLARE_API_TOKEN"] = config.cloudflare_api_token
        if config.cloudflare_service_api_token:
            environment["CLOUDFLARE_SERVICE_API_TOKEN"] = config.cloudflare_service_api_token

        self.provisioning_fn = lambda_.Function(self, "OriginCertificateFn",
            runtime=lambda_.Runtime.PYTHON_3_12,
            handler="main.lambda_handler",
            code=lambda_.Code.from_asset(PROJECT_ROOT,
                exclude=ASSET_EXCLUDES,
                bundling=BundlingOptions(
                    image=lambda_.Runtime.PYTHON_3_12.bundling_image,
                    command=["bash", "-c", BUNDLE_COMMAND]
                )
            ),
            timeout=Duration.minutes(1),
            environment=environment
        )

        # =================================================================
        # 2. PERMISSIONS
        # =================================================================
        # ListCertificates does not support resource-level permissions
        self.provisioning_fn.add_to_role_policy(iam.PolicyStatement(
            actions=[
                "acm:ListCertificates",
                "acm:ImportCertificate",
                "acm:DescribeCertificate",
                "acm:DeleteCertificate",
            ],
            resources=["*"]
        ))

        # =================================================================
        # 3. CUSTOM RESOURCE PROVIDER
        # =================================================================
        self.provider = cr.Provider(self, "OriginCertificateProvider",
            on_event_handler=self.provisioning_fn
        )

        # =================================================================
        # 4. MANAGED CERTIFICATES (find-or-create)
        # =================================================================
        self.certificates: Dict[str, acm.ICertificate] = {}
        for domain_name in config.domain_names:
            name = construct_name(domain_name)
            resource = CustomResource(self, f"OriginCertificate{name}",
                service_token=self.provider.service_token,
                resource_type=CERTIFICATE_RESOURCE_TYPE,
                properties={"DomainName": domain_name},
                removal_policy=config.removal_policy
            )
            certificate_arn = resource.get_att_string("CertificateArn")
            self.certificates[domain_name] = acm.Certificate.from_certificate_arn(
                self, f"Certificate{name}", certificate_arn
            )
            CfnOutput(self, f"CertificateArn{name}",
                value=certificate_arn,
                description=f"ACM ARN of the Cloudflare origin certificate for {domain_name}"
            )

        # =================================================================
        # 5. LOOKUPS (read-only, fail when absent)
        # =================================================================
        self.lookups: Dict[str, str] = {}
        for domain_name in config.lookup_domain_names:
            name = construct_name(domain_name)
            lookup = CustomResource(self, f"OriginCertificateLookup{name}",
                service_token=self.provider.service_token,
                resource_type=LOOKUP_RESOURCE_TYPE,
                properties={"DomainName": domain_name}
            )
            self.lookups[domain_name] = lookup.get_att_string("CertificateArn")
            CfnOutput(self, f"LookupCertificateArn{name}", value=self.lookups[domain_name])
