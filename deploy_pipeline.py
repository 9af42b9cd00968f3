import logging
import os
import shutil
import threading
from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional

from action_status import ActionStatus
from config import ActionSettings, load_config, resolve_settings
from logging_config import enable_log_db
from notifications import WebhookNotifier
from utils import CommandStep, run_command, run_steps

logger = logging.getLogger(__name__)

PUBLIC_DIR = "public"
DATA_FILE = "data.json"
CNAME_FILE = "CNAME"
ENTRY_FILE = "index.html"
GENERATOR_PACKAGE = "business-card-builder-html-gen"
PUBLISH_BRANCH = "master"
COMMIT_MESSAGE = "deployed via Business Card Builder GitHub Action 🎩 for {sha}"

Runner = Callable[[CommandStep], object]


class BuildError(RuntimeError):
    pass


@dataclass
class DeployOutcome:
    deployed: bool = False
    repo: Optional[str] = None
    notification: Optional[threading.Thread] = None

    def settle(self):
        """Wait for a pending webhook call, the way the CI host waits for open requests before exiting."""
        if self.notification is not None:
            self.notification.join()


# ===================================================================
# STEP DEFINITIONS
# ===================================================================
def cleanup_steps(settings: ActionSettings) -> List[CommandStep]:
    return [
        CommandStep(
            name="clean public folder",
            command=f"rm -rf ./{PUBLIC_DIR} && mkdir {PUBLIC_DIR}",
            cwd=settings.workspace,
        ),
    ]


def build_steps(settings: ActionSettings) -> List[CommandStep]:
    version = settings.inputs.builder_script_version
    return [
        CommandStep(
            name="build",
            command=["npx", "--yes", f"{GENERATOR_PACKAGE}@{version}"],
            cwd=settings.workspace,
            stdin_path=os.path.join(settings.workspace, DATA_FILE),
            stdout_path=os.path.join(settings.workspace, PUBLIC_DIR, ENTRY_FILE),
        ),
    ]


def publish_steps(settings: ActionSettings) -> List[CommandStep]:
    """
    A brand new repository every run: one commit, force-pushed over the deploy branch.
    """
    public_dir = os.path.join(settings.workspace, PUBLIC_DIR)
    actor = settings.context.actor
    token = settings.inputs.access_token

    def git(name, *args, secrets=()):
        return CommandStep(name=name, command=["git", *args], cwd=public_dir, secrets=secrets)

    return [
        git("git init", "init"),
        git("git branch", "symbolic-ref", "HEAD", f"refs/heads/{PUBLISH_BRANCH}"),
        git("git user.name", "config", "user.name", actor),
        git("git user.email", "config", "user.email", f"{actor}@users.noreply.github.com"),
        git("git add", "add", "."),
        git("git commit", "commit", "-m", COMMIT_MESSAGE.format(sha=settings.context.sha)),
        git(
            "git push",
            "push", "-f", settings.repo_url, f"{PUBLISH_BRANCH}:{settings.inputs.deploy_branch}",
            secrets=(token,),
        ),
    ]


# ===================================================================
# PIPELINE
# ===================================================================
def is_self_triggered(settings: ActionSettings) -> bool:
    return settings.context.ref == settings.deploy_ref


def verify_build_output(settings: ActionSettings):
    entry = os.path.join(settings.workspace, PUBLIC_DIR, ENTRY_FILE)
    if not os.path.isfile(entry) or os.path.getsize(entry) == 0:
        raise BuildError(f"Build produced no output at {entry}.")


def copy_cname(settings: ActionSettings) -> bool:
    source = os.path.join(settings.workspace, CNAME_FILE)
    if not os.path.isfile(source):
        return False

    logger.info("Copying CNAME over.")
    shutil.copyfile(source, os.path.join(settings.workspace, PUBLIC_DIR, CNAME_FILE))
    logger.info("Finished copying CNAME.")
    return True


def deploy(
        settings: ActionSettings,
        status: ActionStatus,
        runner: Runner = run_command,
        notifier: Optional[WebhookNotifier] = None,
) -> DeployOutcome:
    """
    Build the page and publish it. Every step runs to completion before the next
    starts and any failure propagates to the caller; nothing is rolled back.
    """
    if is_self_triggered(settings):
        logger.info(f"Triggered by branch used to deploy: {settings.context.ref}.")
        logger.info("Nothing to deploy.")
        return DeployOutcome()

    logger.info("Cleaning public folder...")
    run_steps(cleanup_steps(settings), runner)

    logger.info(f"Building with {GENERATOR_PACKAGE}@{settings.inputs.builder_script_version}")
    run_steps(build_steps(settings), runner)
    verify_build_output(settings)
    logger.info("Finished building your site.")

    copy_cname(settings)

    repo = settings.target_repo
    logger.info("Ready to deploy your new shiny site!")
    logger.info(f"Deploying to repo: {repo} and branch: {settings.inputs.deploy_branch}")
    logger.info("You can configure the deploy branch by setting the `deploy-branch` input for this action.")

    run_steps(publish_steps(settings), runner)
    logger.info("Finished deploying your site.")

    if notifier is None:
        notifier = WebhookNotifier(settings.inputs.on_done_webhook_url, status)
    thread = notifier.notify_done(repo)

    logger.info("Enjoy! ✨")
    return DeployOutcome(deployed=True, repo=repo, notification=thread)


def run(
        environ: Optional[Mapping[str, str]] = None,
        workspace: str = ".",
        status: Optional[ActionStatus] = None,
        config_path: Optional[str] = None,
        runner: Runner = run_command,
        log_db: Optional[str] = None,
) -> DeployOutcome:
    """
    CI step entry: resolve the inputs, then deploy. Any error becomes the run's failure message.

    The log database is only opened once the inputs resolved, so a run
    rejected for a missing token leaves no file behind.
    """
    status = status or ActionStatus()
    environ = os.environ if environ is None else environ
    try:
        file_config = load_config(config_path or environ.get("CONFIG_PATH"))
        settings = resolve_settings(environ, file_config, workspace=workspace)
        status.add_mask(settings.inputs.access_token)
        if log_db:
            enable_log_db(log_db)
        return deploy(settings, status, runner=runner)
    except Exception as e:
        logger.debug("Deploy run failed.", exc_info=True)
        status.set_failed(str(e))
        return DeployOutcome()
