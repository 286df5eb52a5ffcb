"""
Static configuration. Anything per-call (base URL overrides, tokens) is passed
explicitly to the fetchers instead of mutating these values.
"""

from repofetch.core import HostConfig
from repofetch.types import TSource

# region ---[ Hosts ]---

DEFAULT_SOURCE: TSource = "github"

DEFAULT_HOSTS: dict[str, HostConfig] = {
    "github": HostConfig(
        source="github",
        base_url="https://github.com",
        api_url="https://api.github.com",
        git_username="x-access-token",
        token_env="GITHUB_TOKEN",
    ),
    "gitlab": HostConfig(
        source="gitlab",
        base_url="https://gitlab.com",
        api_url="https://gitlab.com/api/v4",
        git_username="oauth2",
        token_env="GITLAB_TOKEN",
    ),
}

# Suffix appended to a self-hosted base URL to reach its REST API.
SELF_HOSTED_API_SUFFIX: dict[str, str] = {
    "github": "/api/v3",
    "gitlab": "/api/v4",
}

# endregion

# region ---[ Fallback fetcher ]---

DEFAULT_GIT_EXECUTABLE = "git"
SHORT_HASH_LENGTH = 7
HEAD_PLACEHOLDER = "HEAD"
WORKSPACE_PREFIX = "repofetch-"
WORKSPACE_CLONE_DIR = "clone"
WORKSPACE_ARCHIVE_NAME = "repo.tar.gz"

# endregion

# region ---[ Streaming ]---

DEFAULT_CHUNK_SIZE = 64 * 1024

# endregion

# region ---[ Presets ]---

LIBRARY_STARTER = ("solidjs-community", "solid-lib-starter")

# endregion
