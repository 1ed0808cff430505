import os
from typing import List, Optional
from dotenv import load_dotenv
from aws_cdk import RemovalPolicy

# Load environment variables from a .env file
load_dotenv()

class EnvConfig:
    """
    Stores environment-specific configuration for the origin certificate stack.
    """
    def __init__(
        self,
        env_name: str,
        account: str,
        region: str,
        domain_names: List[str],
        cloudflare_api_token: Optional[str] = None,
        cloudflare_service_api_token: Optional[str] = None,
        lookup_domain_names: Optional[List[str]] = None
    ):
        self.name = env_name
        self.account = account
        self.region = region
        self.domain_names = domain_names
        self.lookup_domain_names = lookup_domain_names or []

        # Cloudflare Origin CA credentials (API token preferred over service key)
        self.cloudflare_api_token = cloudflare_api_token
        self.cloudflare_service_api_token = cloudflare_service_api_token

        # Certificate Lifecycle Policy:
        # In 'prod', imported certificates outlive the stack.
        # In other environments, they are deleted from ACM with it.
        if env_name == 'prod':
            self.removal_policy = RemovalPolicy.RETAIN
        else:
            self.removal_policy = RemovalPolicy.DESTROY

def get_required_env(key: str, fallback: Optional[str] = None) -> str:
    """
    Retrieves a required environment variable, optionally falling back to a
    second variable, or raises a RuntimeError if both are missing.
    """
    value = os.getenv(key)
    if not value and fallback:
        value = os.getenv(fallback)
    if not value:
        hint = f"'{key}'" if not fallback else f"'{key}' or '{fallback}'"
        raise RuntimeError(f"❌ MISSING CONFIG: Required environment variable {hint} not found in .env")
    return value

def split_domains(value: Optional[str]) -> List[str]:
    """
    Parses a comma separated domain list, dropping blanks and duplicates.
    """
    domains: List[str] = []
    for item in (value or "").split(","):
        item = item.strip()
        if item and item not in domains:
            domains.append(item)
    return domains

def get_config(scope) -> EnvConfig:
    """
    Factory function to generate the EnvConfig object based on CDK context.
    Usage: cdk deploy -c env=prod
    """
    # Default to 'dev' environment if no context is provided
    env_name = scope.node.try_get_context("env") or "dev"
    prefix = env_name.upper()

    print(f"🔍 Initializing origin certificate infrastructure for environment: {prefix}")

    # Load Mandatory Variables
    account = get_required_env(f"{prefix}_ACCOUNT")
    region = get_required_env(f"{prefix}_REGION", fallback="AWS_REGION")
    domain_names = split_domains(get_required_env(f"{prefix}_DOMAIN_NAMES"))
    if not domain_names:
        raise RuntimeError(f"❌ MISSING CONFIG: '{prefix}_DOMAIN_NAMES' lists no domains")

    # At least one Cloudflare credential is mandatory
    api_token = os.getenv("CLOUDFLARE_API_TOKEN")
    service_token = os.getenv("CLOUDFLARE_SERVICE_API_TOKEN")
    if not api_token and not service_token:
        raise RuntimeError(
            "❌ MISSING CONFIG: Set 'CLOUDFLARE_API_TOKEN' or 'CLOUDFLARE_SERVICE_API_TOKEN' in .env"
        )

    # Load Optional Variables
    lookup_domain_names = split_domains(os.getenv(f"{prefix}_LOOKUP_DOMAIN_NAMES"))

    return EnvConfig(
        env_name=env_name,
        account=account,
        region=region,
        domain_names=domain_names,
        cloudflare_api_token=api_token,
        cloudflare_service_api_token=service_token,
        lookup_domain_names=lookup_domain_names
    )
