from __future__ import annotations

import os

# -----------------------------------------------------------------------------
# Message directions as stored by the agent platform
# -----------------------------------------------------------------------------

INCOMING_MESSAGE = "incoming"
OUTGOING_MESSAGE = "outgoing"

# Hint set on an inbound message that must be answered without history.
HINT_STATELESS = "stateless"

# -----------------------------------------------------------------------------
# Provider resolution environment variables
# -----------------------------------------------------------------------------

ENV_LLM_PROVIDER = "LLM_PROVIDER"
ENV_LLM_API_KEY = "LLM_API_KEY"
ENV_LLM_ENDPOINT = "LLM_ENDPOINT"
ENV_LLM_DEPLOYMENT_NAME = "LLM_DEPLOYMENT_NAME"
ENV_LLM_MODEL_NAME = "LLM_MODEL_NAME"

# Key inside the remote settings' additional config holding the deployment.
SETTINGS_DEPLOYMENT_NAME_KEY = "DeploymentName"

# -----------------------------------------------------------------------------
# Router defaults
# -----------------------------------------------------------------------------

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 10_000
DEFAULT_HISTORY_SIZE_TO_FETCH = 10
DEFAULT_TARGET_TOKEN_COUNT = 50_000
DEFAULT_MAX_TOKENS_PER_FUNCTION_RESULT = 10_000
DEFAULT_HTTP_TIMEOUT_SECONDS = 5 * 60
DEFAULT_MAX_CONSECUTIVE_CALLS = 10

# Consecutive calls of one function after which the guard starts warning.
WARNING_CONSECUTIVE_CALLS = 5

DEFAULT_COMPLETION_INSTRUCTION = (
    "You are a helpful assistant. Perform the user's request accurately and concisely."
)

SUMMARY_SYSTEM_PROMPT = "You are a helpful assistant that creates concise summaries of conversations."

# -----------------------------------------------------------------------------
# Messaging / durable execution
# -----------------------------------------------------------------------------

DEFAULT_BOT_TO_BOT_TIMEOUT_SECONDS = 300

# Extra time granted to the activity wrapping a bot-to-bot call so that the
# call's own timeout fires first.
BOT_TO_BOT_ACTIVITY_GRACE_SECONDS = 30

# Extra time a bot-to-bot call waits past the timeout handed to the platform.
BOT_TO_BOT_RESPONSE_GRACE_SECONDS = 5

DEFAULT_ACTIVITY_TIMEOUT_SECONDS = int(os.getenv("PARLEY_ACTIVITY_TIMEOUT_SECONDS", str(10 * 60)))

DEFAULT_TOKEN_ENCODING = os.getenv("PARLEY_TOKEN_ENCODING", "cl100k_base")

# Azure OpenAI REST API version used when none is configured.
DEFAULT_AZURE_API_VERSION = os.getenv("AZURE_API_VERSION", "2024-10-21")
