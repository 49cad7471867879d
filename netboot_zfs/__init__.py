"""ZFS-root disk installer and netboot tooling.

- Disk installer: inspect the host, plan partitions and pools, provision
- Deterministic hostnames from chassis class and primary MAC
- Hosts-file reconciliation
- Netboot root image build and one-shot boot script runner
"""

__all__ = []
