"""Core engine that folds local changes into a remote directory object."""

import logging
from pathlib import Path
from typing import Iterable, Optional

from ..exceptions import DagSyncFileError
from ..models import ContentAddress, DirectoryObject
from ..output import OutputFormatter
from ..store import ContentStore
from .comparator import FileComparator, SyncAction, SyncDecision
from .scanner import LocalEntry, list_entries
from .stats import SyncStats

logger = logging.getLogger(__name__)


class TreeSynchronizer:
    """Makes a remote directory object mirror a local directory.

    Unchanged files and subtrees keep their existing addresses and cost no
    patch. Each directory level processes its entries one at a time: every
    patch returns the new parent that the next patch must target.
    """

    def __init__(
        self,
        store: ContentStore,
        output: Optional[OutputFormatter] = None,
        immutable_extensions: Optional[Iterable[str]] = None,
    ):
        """Initialize the synchronizer.

        Args:
            store: Content store client
            output: Output formatter for per-entry diagnostics
            immutable_extensions: Extensions never re-uploaded once
                published (see FileComparator)
        """
        self.store = store
        self.output = output or OutputFormatter()
        self.comparator = FileComparator(immutable_extensions)
        self.stats = SyncStats()

    def sync(self, remote_address: ContentAddress, local_dir: Path) -> ContentAddress:
        """Sync ``local_dir`` into the directory at ``remote_address``.

        Args:
            remote_address: Address of the existing remote directory
            local_dir: Local directory to mirror

        Returns:
            Address of the resulting directory; equal to ``remote_address``
            when nothing changed

        Raises:
            DagSyncFileError: If the local directory cannot be read
            DagSyncError: On any store failure; nothing is retried

        Examples:
            >>> synchronizer = TreeSynchronizer(IpfsClient())
            >>> new_root = synchronizer.sync(root, Path("./site"))
        """
        local_dir = Path(local_dir)
        if not local_dir.exists():
            raise DagSyncFileError(local_dir, "does not exist")
        if not local_dir.is_dir():
            raise DagSyncFileError(local_dir, "not a directory")

        self.stats = SyncStats()
        logger.debug(f"Starting sync of {local_dir} into {remote_address}")

        new_address = self._sync_directory(remote_address, local_dir, "")

        if not self.output.quiet:
            self._display_summary(remote_address, new_address)
        return new_address

    def _sync_directory(
        self, address: ContentAddress, local_dir: Path, prefix: str
    ) -> ContentAddress:
        """Sync one directory level and return its (possibly new) address."""
        root = self.store.fetch_directory(address)
        entries = list_entries(local_dir)

        # current is the accumulator: replaced by every successful patch
        current = root
        for entry in entries:
            decision = self.comparator.decide(entry, root.find(entry.name))
            logger.debug(f"{prefix}{entry.name}: {decision.action.value} ({decision.reason})")
            current = self._apply(current, decision, prefix)

        self._report_drift(root, entries, prefix)
        return current.address

    def _apply(
        self, current: DirectoryObject, decision: SyncDecision, prefix: str
    ) -> DirectoryObject:
        """Execute a decision against the current directory object.

        Returns:
            The directory object to use for the next entry
        """
        entry = decision.entry
        link = decision.link
        display_path = f"{prefix}{entry.name}"

        if decision.action == SyncAction.SKIP_IMMUTABLE:
            self.stats.skipped += 1
            self.output.info(f"Skipping {display_path} ({decision.reason})")
            return current

        if decision.action == SyncAction.RECURSE:
            self.stats.recursed += 1
            new_address = self._sync_directory(
                link.target, entry.path, f"{display_path}/"
            )
        elif entry.is_dir:
            new_address = self.store.upload_tree(entry.path)
            self.stats.uploads += 1
        else:
            new_address = self.store.upload_file(entry.path)
            self.stats.uploads += 1

        if decision.action == SyncAction.REPLACE_KIND:
            self.stats.replaced += 1
            self.output.warning(f"{display_path}: {decision.reason}")
        elif link is not None and new_address == link.target:
            self.stats.unchanged += 1
            logger.debug(f"{display_path} unchanged ({new_address})")
            return current

        patched = self.store.patch_add_link(current.address, entry.name, new_address)
        self.stats.patches += 1
        self.output.info(
            f"Patching {display_path} with {entry.path} ({new_address}), "
            f"directory is now {patched.address}"
        )
        return patched

    def _report_drift(
        self, root: DirectoryObject, entries: list[LocalEntry], prefix: str
    ) -> None:
        """Warn about remote links that have no local entry."""
        local_names = {entry.name for entry in entries}
        for link in root.links:
            if link.name in local_names:
                continue
            remote_path = f"{prefix}{link.name}"
            self.stats.drift.append(remote_path)
            self.output.warning(
                f"Remote entry {remote_path} ({link.target}) has no local counterpart"
            )

    def _display_summary(
        self, old_address: ContentAddress, new_address: ContentAddress
    ) -> None:
        """Display sync summary."""
        stats = self.stats
        self.output.print("")
        self.output.success("Sync complete!")

        if new_address == old_address:
            self.output.info("No changes needed - remote directory is up to date")
        else:
            self.output.info(f"Patches applied: {stats.patches}")
            self.output.info(f"  Uploaded: {stats.uploads}")
        if stats.unchanged > 0:
            self.output.info(f"  Unchanged: {stats.unchanged}")
        if stats.skipped > 0:
            self.output.info(f"  Skipped (immutable): {stats.skipped}")
        if stats.replaced > 0:
            self.output.info(f"  Replaced (kind changed): {stats.replaced}")
        if stats.drift:
            self.output.info(f"  Remote-only entries: {len(stats.drift)}")
