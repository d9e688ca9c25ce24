#!/usr/bin/env python3
"""
Check platform connections for local development.

This script verifies the configured GitHub and GitLab tokens and lists a few
of the repositories each one can see.
"""

import asyncio
import sys
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from commit_watch.config import get_settings
from commit_watch.exceptions import CommitWatchError
from commit_watch.models import Platform
from commit_watch.service import CommitWatchService
from commit_watch.state import InMemoryStateStore


async def check_platform(service: CommitWatchService, platform: Platform) -> bool:
    """Verify one platform's token and list a few repositories."""
    name = platform.display_name
    token = service.settings.platform_config(platform).token
    if not token:
        print(f"ℹ️  {name}: no token configured, skipping")
        return True

    try:
        identity = await service.authenticate(platform, token, arm=False)
        print(f"✅ {name}: connected as {identity.login}")

        repositories = await service.directory.list_repositories(platform)
        print(f"✅ {name}: found {len(repositories)} repositories")
        for repo in repositories[:5]:
            print(f"   - {repo.full_name} ({repo.default_branch})")

        status = service.rate_limiter.get_state(platform)
        if status is not None:
            print(f"   Rate limit: {status.remaining}/{status.limit}")
        return True

    except CommitWatchError as e:
        print(f"❌ {name}: {e.message}")
        return False


async def check_connections() -> bool:
    settings = get_settings()
    # Use a throwaway store so the check never touches real watch state
    service = CommitWatchService.create(settings, store=InMemoryStateStore())
    try:
        results = [await check_platform(service, platform) for platform in Platform]
    finally:
        await service.stop()
    return all(results)


if __name__ == "__main__":
    print("🚀 Commit Watch - Connection Check")
    print("=" * 50)

    settings = get_settings()
    if not (settings.github_token or settings.gitlab_token):
        print("❌ Neither GITHUB_TOKEN nor GITLAB_TOKEN is set")
        sys.exit(1)

    success = asyncio.run(check_connections())
    sys.exit(0 if success else 1)
