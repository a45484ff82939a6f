"""bugfixer.integrations — outbound gateways to third-party APIs.

All outbound HTTP calls go through a gateway in this package, never via
bare ``requests`` calls in services or blueprints.

Current gateways:
  github_gateway.GitHubGateway — GitHub OAuth + REST v3
"""
