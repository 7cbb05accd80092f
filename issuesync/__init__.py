"""issuesync - GitHub issues in Microsoft Search.

This package keeps a Microsoft Graph external connection in step with the
issues of one GitHub repository:

- issuesync.ingest: Webhook intake, bootstrap trigger and issue management API
- issuesync.worker: Queue consumer that re-syncs one issue per message
- issuesync.orchestration: Durable bootstrap workflow (connection, schema, crawl)
- issuesync.github: Issue access and document building
- issuesync.graph: Connection, schema and item calls to Microsoft Graph
- issuesync.models: Shared data models and queue infrastructure
- issuesync.common: Shared utilities and exceptions
"""

__version__ = "0.1.0"
