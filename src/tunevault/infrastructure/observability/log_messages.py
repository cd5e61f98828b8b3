"""Structured log message templates for consistent, human-readable logging.

Hey future me - scans touch thousands of files and hundreds of albums. When something goes
sideways the log has to say WHICH file or album, WHY, and what to check, not just
"Error: [Errno 13]". So instead of ad-hoc f-strings we render:

    🔴 File Scan Failed
    ├─ File: /music/Queen/Innuendo/03 - Headlong.flac
    ├─ Reason: [Errno 13] Permission denied
    └─ 💡 Check file permissions for the scanner user

Principles:
1. **Icon First** - 🔴 error, ⚠️ warning, ✅ success, 🔗 link
2. **Action/Entity** - what happened
3. **Context** - ids, names, paths
4. **Hints** - actionable next step (optional)

Usage:
    from tunevault.infrastructure.observability.log_messages import LogMessages

    logger.warning(LogMessages.file_scan_failed(path, str(e)))
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class LogTemplate:
    """A reusable log message template with placeholders.

    The format() method replaces {placeholders} with actual values and adds
    the icon line, tree-structured fields and an optional hint.
    """

    icon: str
    title: str
    fields: dict[str, str]
    hint: str | None = None

    def format(self, **kwargs: Any) -> str:
        """Format the template with provided values.

        Args:
            **kwargs: Values to fill into template placeholders

        Returns:
            Formatted multi-line log message with icon, title, fields, and optional hint
        """
        lines = [f"{self.icon} {self.title}"]

        field_items = list(self.fields.items())
        for i, (key, value_template) in enumerate(field_items):
            # Last field uses └─ instead of ├─
            prefix = "└─" if i == len(field_items) - 1 and not self.hint else "├─"

            try:
                value = value_template.format(**kwargs)
            except (KeyError, IndexError) as e:
                value = f"<missing: {e}>"

            lines.append(f"{prefix} {key}: {value}")

        if self.hint:
            try:
                hint_text = self.hint.format(**kwargs)
            except (KeyError, IndexError) as e:
                hint_text = f"<missing: {e}>"
            lines.append(f"└─ 💡 {hint_text}")

        return "\n".join(lines)


def _literal(value: Any) -> str:
    # Values go through str.format() later; braces in file names would break that
    return str(value).replace("{", "{{").replace("}", "}}")


class LogMessages:
    """Collection of standardized log message templates.

    Template categories:
    - Scan lifecycle (start / complete / aborted)
    - Per-file and per-album failures
    - Catalog connectivity
    - Auto-link decisions
    - Worker lifecycle
    """

    # === Scan Lifecycle ===

    @staticmethod
    def scan_started(library_name: str, root: str, job_id: str | None = None) -> str:
        """Format a scan start message.

        Args:
            library_name: Library display name
            root: Library root path
            job_id: Job id when run from the queue
        """
        fields = {"Library": _literal(library_name), "Root": _literal(root)}
        if job_id:
            fields["Job"] = _literal(job_id)

        return LogTemplate(icon="🔄", title="Library Scan Started", fields=fields).format()

    @staticmethod
    def scan_completed(
        library_name: str,
        new: int,
        updated: int,
        missing: int,
        errors: int,
        auto_linked: int,
    ) -> str:
        """Format a scan completion message.

        Args:
            library_name: Library display name
            new: Tracks created
            updated: Tracks refreshed
            missing: Tracks flagged missing
            errors: Files that failed
            auto_linked: Albums linked to the catalog
        """
        icon = "✅" if errors == 0 else "⚠️"
        fields = {
            "Library": _literal(library_name),
            "New": str(new),
            "Updated": str(updated),
            "Missing": str(missing),
            "Auto-linked": str(auto_linked),
        }
        if errors > 0:
            fields["Errors"] = str(errors)

        return LogTemplate(icon=icon, title="Library Scan Complete", fields=fields).format()

    @staticmethod
    def scan_aborted(library_id: str, error: str, hint: str | None = None) -> str:
        """Format a message for a scan that could not run to completion.

        Args:
            library_id: Library id
            error: Error description
            hint: Custom troubleshooting hint
        """
        return LogTemplate(
            icon="❌",
            title="Library Scan Aborted",
            fields={"Library": _literal(library_id), "Reason": _literal(error)},
            hint=hint,
        ).format()

    # === Per-Item Failures ===

    @staticmethod
    def file_scan_failed(file_path: str, error: str, hint: str | None = None) -> str:
        """Format a per-file failure message.

        Args:
            file_path: File that failed
            error: Error description
            hint: Troubleshooting hint
        """
        return LogTemplate(
            icon="🔴",
            title="File Scan Failed",
            fields={"File": _literal(file_path), "Reason": _literal(error)},
            hint=hint,
        ).format()

    @staticmethod
    def directory_skipped(directory: str, error: str) -> str:
        """Format a message for a directory that could not be listed.

        Args:
            directory: Directory path
            error: Error description
        """
        return LogTemplate(
            icon="⏭️",
            title="Directory Skipped",
            fields={"Directory": _literal(directory), "Reason": _literal(error)},
            hint="Check read/execute permissions for the scanner user",
        ).format()

    @staticmethod
    def album_match_failed(album_title: str, album_id: str, error: str) -> str:
        """Format a per-album matching failure message.

        Args:
            album_title: Album title
            album_id: Album id
            error: Error description
        """
        return LogTemplate(
            icon="⚠️",
            title="Album Matching Failed",
            fields={
                "Album": _literal(album_title),
                "Id": _literal(album_id),
                "Reason": _literal(error),
            },
        ).format()

    @staticmethod
    def tag_write_failed(file_path: str, error: str) -> str:
        """Format a tag rewrite failure message.

        Args:
            file_path: File whose tags could not be written
            error: Error description
        """
        return LogTemplate(
            icon="⚠️",
            title="Tag Write Failed",
            fields={"File": _literal(file_path), "Reason": _literal(error)},
            hint="The link is stored anyway; the file keeps its old tags",
        ).format()

    # === Catalog ===

    @staticmethod
    def catalog_request_failed(
        service: str,
        target: str,
        error: str | None = None,
        hint: str | None = None,
    ) -> str:
        """Format a catalog request failure message.

        Args:
            service: Service name (e.g., "MusicBrainz", "Cover Art Archive")
            target: Request path or URL
            error: Error message from exception
            hint: Custom troubleshooting hint
        """
        fields = {"Service": _literal(service), "Target": _literal(target)}
        if error:
            fields["Reason"] = _literal(error)

        return LogTemplate(
            icon="🔴",
            title=f"{_literal(service)} Request Failed",
            fields=fields,
            hint=hint or f"Check network access to {_literal(service)}",
        ).format()

    # === Auto-Link ===

    @staticmethod
    def album_auto_linked(
        album_title: str,
        release_id: str,
        confidence: int,
        matched_tracks: int,
        unmatched_tracks: int,
    ) -> str:
        """Format an auto-link success message.

        Args:
            album_title: Album title after the update
            release_id: Catalog release id
            confidence: Match confidence
            matched_tracks: Local tracks linked
            unmatched_tracks: Catalog tracks with no local counterpart
        """
        return LogTemplate(
            icon="🔗",
            title="Album Auto-Linked",
            fields={
                "Album": _literal(album_title),
                "Release": _literal(release_id),
                "Confidence": f"{confidence}%",
                "Tracks": f"{matched_tracks} linked, {unmatched_tracks} unmatched",
            },
        ).format()

    # === Worker Lifecycle ===

    @staticmethod
    def worker_started(worker: str, config: dict[str, Any] | None = None) -> str:
        """Format a worker start message.

        Args:
            worker: Worker name
            config: Additional config to display
        """
        fields: dict[str, str] = {}
        if config:
            for key, value in config.items():
                fields[key] = _literal(value)

        return LogTemplate(icon="✅", title=f"{worker} Started", fields=fields).format()
