# config.py

import os
import yaml
import logging
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from models.github_context import GitHubContext

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_DEPLOY_BRANCH = "master"
DEFAULT_BUILDER_SCRIPT_VERSION = "latest"

MISSING_TOKEN_MESSAGE = (
    "No personal access token found. "
    "Please provide one by setting the `access-token` input for this action."
)


class ConfigError(ValueError):
    pass


def load_config(path: Optional[str] = None, required: bool = False) -> dict:
    """
    Load configuration from the YAML file specified by CONFIG_PATH environment variable or the default path.

    Args:
        path: Explicit file path; falls back to CONFIG_PATH, then 'config.yaml'.
        required: Raise when the file does not exist instead of returning an empty dict.

    Returns:
        dict: Parsed configuration dictionary.
    """
    config_path = path or os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)

    if not os.path.exists(config_path):
        if required:
            logger.error(f"Configuration file '{config_path}' not found.")
            raise FileNotFoundError(f"Configuration file '{config_path}' not found.")
        logger.debug(f"No configuration file at '{config_path}'. Using inputs and defaults only.")
        return {}

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
            logger.info(f"Configuration loaded successfully from '{config_path}'.")
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML file '{config_path}': {e}")
        raise

    if not isinstance(config, dict):
        raise ConfigError(f"Configuration file '{config_path}' must contain a mapping.")
    return config


def get_input(name: str, environ: Optional[Mapping[str, str]] = None, file_config: Optional[dict] = None) -> str:
    """
    Read a step input the way CI hosts pass them: INPUT_<NAME> in the environment,
    falling back to the same key (with underscores) in the YAML config.
    """
    environ = os.environ if environ is None else environ
    env_key = "INPUT_" + name.replace(" ", "_").upper()
    value = (environ.get(env_key) or "").strip()
    if value:
        return value

    file_value = (file_config or {}).get(name.replace("-", "_"))
    if file_value is None:
        return ""
    return str(file_value).strip()


class ActionInputs(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    deploy_branch: str = DEFAULT_DEPLOY_BRANCH
    builder_script_version: str = DEFAULT_BUILDER_SCRIPT_VERSION
    deploy_repo: Optional[str] = None
    on_done_webhook_url: Optional[str] = None


def resolve_inputs(environ: Optional[Mapping[str, str]] = None, file_config: Optional[dict] = None) -> ActionInputs:
    """
    Resolve every input once. The access token is checked first so that a
    missing token fails the run before anything else happens.
    """
    access_token = get_input("access-token", environ, file_config)
    if not access_token:
        raise ConfigError(MISSING_TOKEN_MESSAGE)

    return ActionInputs(
        access_token=access_token,
        deploy_branch=get_input("deploy-branch", environ, file_config) or DEFAULT_DEPLOY_BRANCH,
        builder_script_version=(
            get_input("builder-script-version", environ, file_config) or DEFAULT_BUILDER_SCRIPT_VERSION
        ),
        deploy_repo=get_input("deploy-repo", environ, file_config) or None,
        on_done_webhook_url=get_input("on-done-webhook-url", environ, file_config) or None,
    )


class ActionSettings(BaseModel):
    """Everything a deploy run needs, resolved up front and passed in explicitly."""
    model_config = ConfigDict(frozen=True)

    inputs: ActionInputs
    context: GitHubContext
    workspace: str = "."

    @property
    def deploy_ref(self) -> str:
        return f"refs/heads/{self.inputs.deploy_branch}"

    @property
    def target_repo(self) -> str:
        """Deploy target descriptor '<owner>/<repo>'."""
        return f"{self.context.owner}/{self.inputs.deploy_repo or self.context.repo}"

    @property
    def repo_url(self) -> str:
        return f"https://{self.inputs.access_token}@{self.context.host}/{self.target_repo}.git"


def resolve_settings(
        environ: Optional[Mapping[str, str]] = None,
        file_config: Optional[dict] = None,
        workspace: str = ".",
) -> ActionSettings:
    environ = os.environ if environ is None else environ
    inputs = resolve_inputs(environ, file_config)
    context = GitHubContext.from_env(environ)
    return ActionSettings(inputs=inputs, context=context, workspace=workspace)

