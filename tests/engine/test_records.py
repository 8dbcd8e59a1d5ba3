from autotune.config import load_config
from autotune.engine.records import RecordTransformer, rewrite_option_line, transform_records
from autotune.environment import detect_role
from autotune.models import OptionRules
from autotune.modules.storage import btrfs_option_rules

FSTAB = """\
# <file system> <dir> <type> <options> <dump> <pass>
UUID=aaaa  /           btrfs  subvol=/@,defaults,compress=zstd:1,commit=30  0 0
UUID=aaaa  /home       btrfs  subvol=/@home,defaults,nofail  0 0
UUID=bbbb  /boot       vfat   umask=0077  0 2
UUID=aaaa  /var/cache  btrfs  subvol=/@cache,defaults  0 0
UUID=cccc  /data       ext4   defaults  0 2

UUID=dddd  /mnt/games  btrfs  defaults
"""


# Helpers


def btrfs_transformer() -> RecordTransformer:
    settings = load_config().btrfs
    return RecordTransformer(
        field_count=6,
        type_filter="btrfs",
        role_fn=lambda target: detect_role(target, settings.primary_mounts),
        rules=btrfs_option_rules(settings),
    )


def options_of(content: str, target: str) -> list:
    for line in content.splitlines():
        fields = line.split()
        if len(fields) >= 4 and fields[1] == target:
            return fields[3].split(",")
    raise AssertionError(f"no record for {target}")


def test_end_to_end_root_record():
    out = btrfs_transformer().transform("/dev/sda2\t/\tbtrfs\tdefaults\t0\t1\n")
    assert out == "/dev/sda2\t/\tbtrfs\tcommit=60,compress=zstd:3,discard=async,noatime,ssd\t0\t1\n"


def test_role_isolation():
    content = (
        "UUID=a / btrfs defaults 0 0\n"
        "UUID=a /boot btrfs nofail 0 0\n"
        "UUID=a /home btrfs defaults,x-systemd.device-timeout=5s 0 0\n"
        "UUID=b /srv btrfs defaults 0 0\n"
        "UUID=c /mnt/backup btrfs noatime 0 0\n"
    )
    out = btrfs_transformer().transform(content)
    for target in ("/", "/boot", "/home"):
        opts = options_of(out, target)
        assert "nofail" not in opts
        assert "x-systemd.device-timeout=5s" not in opts
    for target in ("/srv", "/mnt/backup"):
        opts = options_of(out, target)
        assert "nofail" in opts
        assert "x-systemd.device-timeout=5s" in opts


def test_single_valued_options_in_records():
    out = btrfs_transformer().transform(FSTAB)
    opts = options_of(out, "/")
    assert [o for o in opts if o.startswith("compress=")] == ["compress=zstd:3"]
    assert [o for o in opts if o.startswith("commit=")] == ["commit=60"]
    assert "subvol=/@" in opts


def test_non_matching_lines_pass_through():
    out = btrfs_transformer().transform(FSTAB)
    before = FSTAB.splitlines()
    after = out.splitlines()
    assert len(before) == len(after)
    for original in before:
        fields = original.split()
        if not fields or original.startswith("#") or len(fields) < 6 or fields[2] != "btrfs":
            assert original in after


def test_rewritten_records_use_tabs():
    out = btrfs_transformer().transform(FSTAB)
    line = next(l for l in out.splitlines() if "/var/cache" in l)
    assert line.split("\t")[:3] == ["UUID=aaaa", "/var/cache", "btrfs"]
    assert line.split("\t")[4:] == ["0", "0"]


def test_short_btrfs_line_is_left_alone(caplog):
    caplog.set_level("DEBUG", logger="autotune")
    out = btrfs_transformer().transform(FSTAB)
    assert "UUID=dddd  /mnt/games  btrfs  defaults" in out.splitlines()
    assert "expected 6" in caplog.text


def test_line_endings_are_preserved():
    content = "# header\r\nUUID=a / btrfs defaults 0 0\r\n"
    out = btrfs_transformer().transform(content)
    assert out.startswith("# header\r\n")
    assert out.endswith("\t0\t0\r\n")


def test_transform_is_idempotent():
    once = btrfs_transformer().transform(FSTAB)
    assert btrfs_transformer().transform(once) == once


def test_transform_records_wrapper():
    rules = OptionRules(force_add=("noatime",))
    out = transform_records("a /x xfs defaults 0 0\n", 6, "xfs", lambda t: "secondary", rules)
    assert out == "a\t/x\txfs\tdefaults,noatime\t0\t0\n"


def test_rewrite_option_line_appends_missing_tokens():
    entry = "title Arch\nlinux /vmlinuz-linux\noptions root=UUID=abc rw  quiet\n"
    rules = OptionRules(force_add=("quiet", "nowatchdog"), delimiter=" ", sort=False)
    out, found = rewrite_option_line(entry, "options", rules)
    assert found
    assert out == "title Arch\nlinux /vmlinuz-linux\noptions root=UUID=abc rw quiet nowatchdog\n"
    assert rewrite_option_line(out, "options", rules) == (out, True)


def test_rewrite_option_line_without_match():
    entry = "title Arch\nlinux /vmlinuz-linux\n"
    rules = OptionRules(force_add=("quiet",), delimiter=" ", sort=False)
    assert rewrite_option_line(entry, "options", rules) == (entry, False)


def test_rewrite_option_line_ignores_similar_keys():
    entry = "optionsx foo\noptions\n"
    rules = OptionRules(force_add=("quiet",), delimiter=" ", sort=False)
    out, found = rewrite_option_line(entry, "options", rules)
    assert found
    assert out == "optionsx foo\noptions quiet\n"
