import pytest
import subprocess
from branch_weight import CommitRecord, ProgressReporter

PAYLOAD = b"\x00\x01\x02\x03" * 250_000   # 1,000,000 bytes, NULs make it binary
LOGO = bytes(range(256)) * 4               # 1,024 bytes


@pytest.fixture
def quiet_reporter():
    return ProgressReporter(quiet=True)


@pytest.fixture
def sample_records():
    """Estimated records: one shared by two branches, one tag-only, one unowned."""
    return [
        CommitRecord("aaa111", ("feature",), text_size=4_000, binary_size=0,
                     est_compressed_size=800),
        CommitRecord("bbb222", ("feature", "bugfix"), text_size=400, binary_size=2_000_000,
                     est_compressed_size=1_600_080),
        CommitRecord("ccc333", ("bugfix",), text_size=120, est_compressed_size=24),
        CommitRecord("ddd444", tag_only=True, text_size=200, est_compressed_size=40),
        CommitRecord("eee555", text_size=999, est_compressed_size=199),
    ]


@pytest.fixture
def git_repo(tmp_path):
    """
    Repository with trunk "main" and this history off the root commit:

      feature-x  adds a 1,000,000 byte binary
      a, b       share one commit, then add one commit each
      v1.0       lightweight tag on a commit no branch reaches
      side       one commit, merged (--no-ff) into topic; merge tagged merge-tag
      rework     pure rename of README.md plus an in-place change of a binary
    """
    repo = tmp_path / "repo"
    repo.mkdir()

    def run(*args):
        return subprocess.run(["git", "-C", str(repo)] + list(args),
                              check=True, capture_output=True, text=True)

    def commit(message):
        run("add", "-A")
        run("commit", "-q", "-m", message)
        return run("rev-parse", "HEAD").stdout.strip()

    run("init", "-q")
    run("symbolic-ref", "HEAD", "refs/heads/main")
    run("config", "user.email", "tester@test.com")
    run("config", "user.name", "Tester")
    run("config", "commit.gpgsign", "false")
    run("config", "tag.gpgsign", "false")

    commits = {}

    (repo / "README.md").write_text("# Project\n", encoding="utf-8")
    (repo / "assets").mkdir()
    (repo / "assets" / "logo.png").write_bytes(LOGO)
    commits["root"] = commit("initial")

    run("checkout", "-q", "-b", "feature-x")
    (repo / "assets" / "payload.bin").write_bytes(PAYLOAD)
    commits["feature_x"] = commit("add payload")

    run("checkout", "-q", "main")
    run("checkout", "-q", "-b", "a")
    (repo / "shared.txt").write_text("line1\nline2\nline3\n", encoding="utf-8")
    commits["shared"] = commit("shared work")
    run("branch", "b")
    (repo / "a.txt").write_text("alpha\n", encoding="utf-8")
    commits["a_only"] = commit("a work")
    run("checkout", "-q", "b")
    (repo / "b.txt").write_text("beta\nbeta\n", encoding="utf-8")
    commits["b_only"] = commit("b work")

    run("checkout", "-q", "main")
    run("checkout", "-q", "-b", "release-tmp")
    (repo / "notes.txt").write_text("1\n2\n3\n4\n5\n", encoding="utf-8")
    commits["tagged"] = commit("release notes")
    run("tag", "v1.0")
    run("checkout", "-q", "main")
    run("branch", "-D", "release-tmp")

    run("checkout", "-q", "-b", "topic")
    (repo / "topic.txt").write_text("topic\n", encoding="utf-8")
    commits["topic"] = commit("topic work")
    run("checkout", "-q", "main")
    run("checkout", "-q", "-b", "side")
    (repo / "side.txt").write_text("side\n", encoding="utf-8")
    commits["side"] = commit("side work")
    run("checkout", "-q", "topic")
    run("merge", "-q", "--no-ff", "side", "-m", "merge side")
    commits["merge"] = run("rev-parse", "HEAD").stdout.strip()
    run("tag", "merge-tag")

    run("checkout", "-q", "main")
    run("checkout", "-q", "-b", "rework")
    run("mv", "README.md", "README.rst")
    (repo / "assets" / "logo.png").write_bytes(LOGO[::-1] + b"\x00")
    commits["rework"] = commit("rename readme, refresh logo")

    run("checkout", "-q", "main")
    return {"path": str(repo), "commits": commits}
