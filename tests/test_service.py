import json
import os
import sys

from leakscan.core.config import ScanConfig
from leakscan.core.locator import BinaryLocator, PathBinaryLocator
from leakscan.core.service import ScanContext


class FixedLocator(BinaryLocator):
    def __init__(self, path):
        self.path = path
        self.ensure_calls = 0

    def locate(self):
        return self.path

    def ensure(self):
        self.ensure_calls += 1
        return self.path


def make_context(transactions, scratch_dir, binary, **overrides):
    config = ScanConfig(scratch_dir=str(scratch_dir), timeout=30, **overrides)
    return ScanContext(transactions, FixedLocator(binary and str(binary)), config)


def test_scan_stores_findings_and_updates_stats(transactions, scratch_dir, fake_scanner):
    ctx = make_context(transactions, scratch_dir, fake_scanner)
    results = ctx.scan(["1", "2", "3"])
    assert len(results) == 3
    findings = ctx.get_findings()
    assert len(findings) == 1
    assert ctx.get_findings_for_record("1") == findings

    stats = ctx.get_stats()
    assert stats.total_scanned == 3
    assert stats.total_findings == 1
    assert stats.scanner_version == "1.71.0"
    assert stats.last_scan_time is not None


def test_binary_unavailable_gives_one_error_per_id(transactions, scratch_dir):
    ctx = make_context(transactions, scratch_dir, None)
    results = ctx.scan(["1", "2", "unknown"])
    assert [r.record_id for r in results] == ["1", "2", "unknown"]
    assert all(r.error == "kingfisher binary not found and could not be installed" for r in results)
    assert all(r.findings == [] for r in results)
    assert ctx.get_findings() == []


def test_empty_scan_request(transactions, scratch_dir, fake_scanner):
    ctx = make_context(transactions, scratch_dir, fake_scanner)
    assert ctx.scan([]) == []
    assert ctx.get_stats().total_scanned == 0


def test_mixed_ids_one_result_each(transactions, scratch_dir, fake_scanner):
    ctx = make_context(transactions, scratch_dir, fake_scanner, batch_size=2, max_parallel=2)
    ids = ["1", "x", "2", "y", "3", "z", "1"]
    results = ctx.scan(ids)
    assert sorted(r.record_id for r in results) == ["1", "2", "3", "x", "y", "z"]
    errors = {r.record_id for r in results if r.error}
    assert errors == {"x", "y", "z"}
    assert os.listdir(scratch_dir) == []


def test_export_masks_unless_asked(transactions, scratch_dir, fake_scanner, github_token):
    ctx = make_context(transactions, scratch_dir, fake_scanner)
    ctx.scan(["1"])
    exported = json.loads(ctx.export_findings())
    assert len(exported) == 1
    assert github_token not in json.dumps(exported)
    assert exported[0]["finding"]["snippet"].startswith("ghp_")
    revealed = json.loads(ctx.export_findings(include_unmasked=True))
    assert revealed[0]["finding"]["raw_snippet"] == github_token


def test_clear_and_remove(transactions, scratch_dir, fake_scanner):
    ctx = make_context(transactions, scratch_dir, fake_scanner)
    ctx.scan(["1"])
    finding = ctx.get_findings()[0]
    assert ctx.remove_finding(finding.id) is True
    ctx.scan(["1"])
    ctx.clear_findings()
    assert ctx.get_findings() == []
    stats = ctx.get_stats()
    assert stats.total_findings == 0
    assert stats.total_scanned == 2


def test_missing_store_is_reported_not_raised(transactions, scratch_dir, fake_scanner):
    ctx = make_context(transactions, scratch_dir, fake_scanner)
    ctx.store = None
    assert ctx.get_findings() == []
    assert ctx.export_findings() == "[]"
    ctx.clear_findings()
    assert ctx.get_stats().total_scanned == 0
    results = ctx.scan(["1"])
    assert len(results) == 1


def test_install_invalidates_cached_version(transactions, scratch_dir, fake_scanner, tmp_path):
    installer = tmp_path / "install.py"
    target = tmp_path / "installed" / "kingfisher"
    installer.write_text(
        "import shutil, sys, os\n"
        "os.makedirs(os.path.dirname(sys.argv[2]), exist_ok=True)\n"
        "shutil.copy(sys.argv[1], sys.argv[2])\n"
    )
    locator = PathBinaryLocator(
        explicit_path=str(target),
        install_command=[sys.executable, str(installer), str(fake_scanner), str(target)],
    )
    ctx = ScanContext(transactions, locator, ScanConfig(scratch_dir=str(scratch_dir), timeout=30))
    assert ctx.scanner_version() is None

    ok, output = ctx.install_scanner()
    assert ok, output
    assert "1.71.0" in output
    assert ctx.get_stats().scanner_version == "1.71.0"
    assert len(ctx.scan(["1"])[0].findings) == 1


def test_install_upgrades_existing_binary(transactions, scratch_dir, fake_scanner, tmp_path):
    target = tmp_path / "installed" / "kingfisher"
    target.parent.mkdir()
    target.write_text(fake_scanner.read_text().replace("kingfisher 1.71.0", "kingfisher 1.60.0"))
    target.chmod(0o755)
    installer = tmp_path / "upgrade.py"
    installer.write_text("import shutil, sys\nshutil.copy(sys.argv[1], sys.argv[2])\nprint('upgraded')\n")
    locator = PathBinaryLocator(
        explicit_path=str(target),
        install_command=[sys.executable, str(installer), str(fake_scanner), str(target)],
    )
    ctx = ScanContext(transactions, locator, ScanConfig(scratch_dir=str(scratch_dir), timeout=30))
    assert ctx.scanner_version() == "1.60.0"

    ok, output = ctx.install_scanner()
    assert ok, output
    assert "upgraded" in output
    assert ctx.scanner_version() == "1.71.0"


def test_install_without_installer_reports_existing_binary(transactions, scratch_dir, fake_scanner):
    locator = PathBinaryLocator(explicit_path=str(fake_scanner))
    ctx = ScanContext(transactions, locator, ScanConfig(scratch_dir=str(scratch_dir), timeout=30))
    ok, output = ctx.install_scanner()
    assert ok
    assert str(fake_scanner) in output
