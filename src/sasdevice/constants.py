# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""Fixed literals shared across the pipeline."""

# Local identity and key services (Unix domain sockets)
IDENTITY_SOCKET_PATH = "/run/aziot/identityd.sock"
IDENTITY_HOST = "identityd.sock"
KEY_SOCKET_PATH = "/run/aziot/keyd.sock"
KEY_HOST = "keyd.sock"
LOCAL_API_VERSION = "2020-09-01"

# Signing
SIGNING_ALGORITHM = "HMAC-SHA256"
SAS_SCHEME = "SharedAccessSignature"
DEFAULT_TOKEN_TTL_SECONDS = 86400  # 1 day

# Hub session
HUB_API_VERSION = "2021-04-12"
MQTT_TLS_PORT = 8883
MODEL_ID = "dtmi:com:iotdevice:Thermostat;1"
TELEMETRY_TOPIC_TEMPLATE = "devices/{device_id}/messages/events/"

DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_CLOSE_TIMEOUT_SECONDS = 10.0
DEFAULT_TELEMETRY_INTERVAL_SECONDS = 10.0
