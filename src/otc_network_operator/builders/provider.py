"""Builder for OTC provider clients."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Mapping

import openstack
from keystoneauth1 import exceptions as ks_exceptions
from openstack import exceptions as sdk_exceptions

from ..constants import (
    OTC_REQUEST_TIMEOUT,
    SECRET_KEY_ACCESS_KEY,
    SECRET_KEY_PASSWORD,
    SECRET_KEY_SECRET_KEY,
    SECRET_KEY_TOKEN,
    SECRET_KEY_USERNAME,
)
from ..exceptions import CredentialsError, ProviderError
from ..services.otc.client import OTCClient
from ..store import ObjectStore
from ..utils.secrets import decode_secret_data


@dataclass(frozen=True)
class Credentials:
    """One usable credential combination from the credentials secret."""

    username: str = ""
    password: str = ""
    access_key: str = ""
    secret_key: str = ""
    token: str = ""

    @property
    def method(self) -> str:
        if self.username:
            return "password"
        if self.access_key:
            return "aksk"
        return "token"


def credentials_from_secret_data(secret_name: str, data: Mapping[str, str]) -> Credentials:
    """Pick the credentials from decoded secret data.

    username/password wins over accessKey/secretKey, which wins over token.

    Raises:
        CredentialsError: If no complete combination is present
    """
    if data.get(SECRET_KEY_USERNAME) and data.get(SECRET_KEY_PASSWORD):
        return Credentials(username=data[SECRET_KEY_USERNAME], password=data[SECRET_KEY_PASSWORD])
    if data.get(SECRET_KEY_ACCESS_KEY) and data.get(SECRET_KEY_SECRET_KEY):
        return Credentials(access_key=data[SECRET_KEY_ACCESS_KEY], secret_key=data[SECRET_KEY_SECRET_KEY])
    if data.get(SECRET_KEY_TOKEN):
        return Credentials(token=data[SECRET_KEY_TOKEN])

    raise CredentialsError(
        f"secret {secret_name} must contain one of the following combinations: "
        f"('{SECRET_KEY_USERNAME}' and '{SECRET_KEY_PASSWORD}'), "
        f"('{SECRET_KEY_ACCESS_KEY}' and '{SECRET_KEY_SECRET_KEY}') or '{SECRET_KEY_TOKEN}'"
    )


def connection_options(spec: Mapping[str, Any], credentials: Credentials) -> dict[str, Any]:
    """Build the keyword arguments for ``openstack.connect``.

    Raises:
        CredentialsError: For access/secret key pairs, which keystone cannot sign
    """
    endpoint = spec.get("identityEndpoint")
    region = spec.get("region")
    if not endpoint or not region:
        raise ValueError("identityEndpoint and region are required")

    options: dict[str, Any] = {
        "auth_url": endpoint,
        "region_name": region,
        "identity_api_version": "3",
        "timeout": OTC_REQUEST_TIMEOUT,
        "load_yaml_config": False,
        "load_envvars": False,
    }

    # Without an explicit project, OTC scopes to the project named after the region.
    if spec.get("projectID"):
        options["project_id"] = spec["projectID"]
    else:
        options["project_name"] = region
        options["project_domain_name"] = spec.get("domainName", "")

    method = credentials.method
    if method == "password":
        options.update(
            auth_type="password",
            username=credentials.username,
            password=credentials.password,
            user_domain_name=spec.get("domainName", ""),
        )
    elif method == "token":
        options.update(auth_type="v3token", token=credentials.token)
    else:
        raise CredentialsError(
            f"'{SECRET_KEY_ACCESS_KEY}'/'{SECRET_KEY_SECRET_KEY}' authentication is not supported, "
            f"use '{SECRET_KEY_USERNAME}'/'{SECRET_KEY_PASSWORD}' or '{SECRET_KEY_TOKEN}'"
        )
    return options


def create_provider_from_config(
    provider_config: Mapping[str, Any],
    store: ObjectStore,
    cancel: threading.Event | None = None,
) -> OTCClient:
    """Create an authenticated OTC client from a ProviderConfig object.

    Args:
        provider_config: ProviderConfig custom resource
        store: Object store used to read the credentials secret
        cancel: Event that aborts long-running provider waits

    Returns:
        Configured OTC client

    Raises:
        CredentialsError: If the credentials secret is missing or unusable
        ProviderError: If authentication fails
        ValueError: If the ProviderConfig is incomplete
    """
    meta = provider_config.get("metadata", {})
    spec = provider_config.get("spec", {})
    namespace = meta.get("namespace", "default")

    secret_name = (spec.get("credentialsSecretRef") or {}).get("name")
    if not secret_name:
        raise CredentialsError(f"ProviderConfig {meta.get('name')} has no credentialsSecretRef")

    secret = store.get_secret(namespace, secret_name)
    if secret is None:
        raise CredentialsError(f"failed to get credentials secret {namespace}/{secret_name}: not found")

    credentials = credentials_from_secret_data(secret_name, decode_secret_data(secret))
    options = connection_options(spec, credentials)

    try:
        connection = openstack.connect(**options)
        # Authenticate now so bad credentials surface here and not on first use.
        connection.authorize()
    except (ks_exceptions.ClientException, sdk_exceptions.SDKException) as e:
        raise ProviderError(f"failed to authenticate against {spec.get('identityEndpoint')}: {e}") from e

    return OTCClient(
        connection,
        identity_endpoint=spec["identityEndpoint"],
        region=spec["region"],
        project_id=spec.get("projectID", ""),
        cancel=cancel,
    )
