import aws_cdk as cdk
from config import get_config
from stacks.origin_certificate_stack import OriginCertificateStack

app = cdk.App()
config = get_config(app)

# =================================================================
# ORIGIN CERTIFICATE STACK
# =================================================================
# Certificates land in ACM in the configured region.
# Use us-east-1 when they are meant for CloudFront.
cert_env = cdk.Environment(account=config.account, region=config.region)
cert_stack = OriginCertificateStack(
    app, f"OriginCertificates-{config.name}",
    config=config,
    env=cert_env
)

print(f"🔐 Managing {len(config.domain_names)} origin certificate(s) in {config.region}")
if config.lookup_domain_names:
    print(f"🔎 Looking up {len(config.lookup_domain_names)} existing certificate(s)")

app.synth()
