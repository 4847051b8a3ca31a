"""github-merge-manager: approve and merge matching pull requests across a GitHub organization."""

__version__ = "0.1.0"
