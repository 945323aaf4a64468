"""tools

Analyzer integrations: the tool registry, process invocation, and one parser
package per output format.

Nothing in here depends on ``pipeline/`` or ``cli/``.
"""
