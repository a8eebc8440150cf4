"""
Data Models Module

This module defines the Pydantic models for GitHub webhook payloads.

Design Decisions:
- Model only the fields applications commonly need; unknown fields are
  kept (extra="allow") so nothing GitHub sends is lost
- One payload model per X-GitHub-Event name, all sharing WebhookPayload
- Events without a dedicated model parse as WebhookPayload
"""

from datetime import datetime
from typing import Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field


class GitHubModel(BaseModel):
    """Base for GitHub objects; keeps fields not declared on the model."""
    model_config = ConfigDict(extra="allow")


# =============================================================================
# GitHub Objects
# =============================================================================

class GitHubUser(GitHubModel):
    """GitHub user information."""
    login: str
    id: int
    type: str = "User"


class GitHubOrganization(GitHubModel):
    """GitHub organization information."""
    login: str
    id: int
    description: Optional[str] = None


class GitHubRepository(GitHubModel):
    """GitHub repository information."""
    id: int
    name: str
    full_name: str
    private: bool = False
    owner: GitHubUser
    html_url: Optional[str] = None
    default_branch: Optional[str] = None


class GitHubInstallationRepository(GitHubModel):
    """Abbreviated repository listed in installation events."""
    id: int
    name: str
    full_name: str
    private: bool = False


class GitHubInstallation(GitHubModel):
    """GitHub App installation information."""
    id: int
    account: Optional[GitHubUser] = None
    app_id: Optional[int] = None


class GitHubLabel(GitHubModel):
    name: str
    color: Optional[str] = None


class GitHubIssue(GitHubModel):
    """Issue information from webhook."""
    id: int
    number: int
    title: str
    state: str
    body: Optional[str] = None
    user: GitHubUser
    labels: List[GitHubLabel] = Field(default_factory=list)
    html_url: Optional[str] = None

    @property
    def is_pull_request(self) -> bool:
        """Issue comment events fire for pull requests too."""
        return "pull_request" in (self.model_extra or {})


class GitHubComment(GitHubModel):
    """Issue or pull request comment."""
    id: int
    body: Optional[str] = None
    user: GitHubUser
    html_url: Optional[str] = None


class GitHubPullRequestRef(GitHubModel):
    """PR head (source) or base (target) branch information."""
    ref: str
    sha: str
    repo: Optional[GitHubRepository] = None


class GitHubPullRequest(GitHubModel):
    """Pull request information from webhook."""
    id: int
    number: int
    state: str
    title: str
    body: Optional[str] = None
    user: GitHubUser
    html_url: Optional[str] = None
    head: GitHubPullRequestRef
    base: GitHubPullRequestRef
    merged: bool = False
    draft: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GitHubReview(GitHubModel):
    """Pull request review."""
    id: int
    state: str
    body: Optional[str] = None
    user: Optional[GitHubUser] = None


class GitHubCommitAuthor(GitHubModel):
    name: str
    email: Optional[str] = None
    username: Optional[str] = None


class GitHubCommit(GitHubModel):
    """Commit listed in a push event."""
    id: str
    message: str
    timestamp: Optional[datetime] = None
    url: Optional[str] = None
    author: Optional[GitHubCommitAuthor] = None


class GitHubHook(GitHubModel):
    """Webhook configuration sent with the ping event."""
    id: int
    type: Optional[str] = None
    events: List[str] = Field(default_factory=list)
    active: bool = True


class GitHubCheckRun(GitHubModel):
    id: int
    name: str
    status: str
    conclusion: Optional[str] = None
    head_sha: str


class GitHubCheckSuite(GitHubModel):
    id: int
    status: Optional[str] = None
    conclusion: Optional[str] = None
    head_sha: str
    head_branch: Optional[str] = None


class GitHubRelease(GitHubModel):
    id: int
    tag_name: str
    name: Optional[str] = None
    draft: bool = False
    prerelease: bool = False


class GitHubWorkflowRun(GitHubModel):
    id: int
    name: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    head_sha: str
    run_number: Optional[int] = None


# =============================================================================
# Webhook Event Payloads
# =============================================================================

class WebhookPayload(GitHubModel):
    """Fields shared by every webhook payload."""
    action: Optional[str] = None
    installation: Optional[GitHubInstallation] = None
    repository: Optional[GitHubRepository] = None
    sender: Optional[GitHubUser] = None
    organization: Optional[GitHubOrganization] = None


class PingEvent(WebhookPayload):
    """Sent when a webhook is created, and on manual redelivery tests."""
    zen: str
    hook_id: int
    hook: Optional[GitHubHook] = None


class PushEvent(WebhookPayload):
    """Commits pushed to a branch or tag."""
    ref: str
    before: str
    after: str
    created: bool = False
    deleted: bool = False
    forced: bool = False
    commits: List[GitHubCommit] = Field(default_factory=list)
    head_commit: Optional[GitHubCommit] = None
    pusher: Optional[GitHubCommitAuthor] = None


class IssuesEvent(WebhookPayload):
    action: str
    issue: GitHubIssue


class IssueCommentEvent(WebhookPayload):
    action: str
    issue: GitHubIssue
    comment: GitHubComment


class PullRequestEvent(WebhookPayload):
    action: str
    number: int
    pull_request: GitHubPullRequest


class PullRequestReviewEvent(WebhookPayload):
    action: str
    review: GitHubReview
    pull_request: GitHubPullRequest


class InstallationEvent(WebhookPayload):
    """App installed, uninstalled, suspended or permissions changed."""
    action: str
    installation: GitHubInstallation
    repositories: List[GitHubInstallationRepository] = Field(default_factory=list)


class InstallationRepositoriesEvent(WebhookPayload):
    action: str
    installation: GitHubInstallation
    repository_selection: Optional[str] = None
    repositories_added: List[GitHubInstallationRepository] = Field(default_factory=list)
    repositories_removed: List[GitHubInstallationRepository] = Field(default_factory=list)


class CheckRunEvent(WebhookPayload):
    action: str
    check_run: GitHubCheckRun


class CheckSuiteEvent(WebhookPayload):
    action: str
    check_suite: GitHubCheckSuite


class ReleaseEvent(WebhookPayload):
    action: str
    release: GitHubRelease


class WorkflowRunEvent(WebhookPayload):
    action: str
    workflow_run: GitHubWorkflowRun


# X-GitHub-Event header value -> payload model
EVENT_MODELS: Dict[str, Type[WebhookPayload]] = {
    "ping": PingEvent,
    "push": PushEvent,
    "issues": IssuesEvent,
    "issue_comment": IssueCommentEvent,
    "pull_request": PullRequestEvent,
    "pull_request_review": PullRequestReviewEvent,
    "installation": InstallationEvent,
    "installation_repositories": InstallationRepositoriesEvent,
    "check_run": CheckRunEvent,
    "check_suite": CheckSuiteEvent,
    "release": ReleaseEvent,
    "workflow_run": WorkflowRunEvent,
}


def model_for_event(event: Optional[str]) -> Type[WebhookPayload]:
    """Payload model for an event name, WebhookPayload when unknown."""
    return EVENT_MODELS.get(event or "", WebhookPayload)


def event_for_model(model: Type[WebhookPayload]) -> Optional[str]:
    """Event name a payload model is registered for, if any."""
    for name, registered in EVENT_MODELS.items():
        if registered is model:
            return name
    return None
