import json
import subprocess
import unittest
from unittest.mock import mock_open, patch

from subrank.managers import ManagerError, ManifestError, detect_manager
from subrank.managers.javascript import NodeManager, npm_flags, top_level_dependencies


class TestNodeManager(unittest.TestCase):

    def setUp(self):
        self.manager = NodeManager("/tmp/project", omit={"optional", "dev"}, include={"peer"})

    @patch("subprocess.check_output")
    def test_list_tree_requests_long_output(self, mock_subprocess):
        mock_subprocess.return_value = json.dumps({"name": "fixture"})

        tree = self.manager.list_tree()

        cmd = mock_subprocess.call_args[0][0]
        self.assertIn(cmd[0], ("npm", "npm.cmd"))
        self.assertEqual(
            cmd[1:],
            ["ls", "--all", "--json", "--long", "--omit=dev", "--omit=optional", "--include=peer"],
        )
        self.assertEqual(mock_subprocess.call_args[1]["cwd"], "/tmp/project")
        self.assertIn("timeout", mock_subprocess.call_args[1])
        self.assertEqual(tree, {"name": "fixture"})

    @patch("subprocess.check_output")
    def test_list_tree_salvages_json_from_failed_exit(self, mock_subprocess):
        mock_subprocess.side_effect = subprocess.CalledProcessError(
            1, ["npm", "ls"], output=json.dumps({"dependencies": {"a": {"version": "1.0.0"}}}), stderr="ELSPROBLEMS"
        )

        tree = self.manager.list_tree()

        self.assertEqual(tree["dependencies"]["a"]["version"], "1.0.0")

    @patch("subprocess.check_output")
    def test_list_tree_without_output_is_fatal(self, mock_subprocess):
        mock_subprocess.side_effect = subprocess.CalledProcessError(1, ["npm", "ls"], output="", stderr="boom")

        with self.assertRaises(ManagerError):
            self.manager.list_tree()

    @patch("subprocess.check_output")
    def test_list_tree_missing_npm_is_fatal(self, mock_subprocess):
        mock_subprocess.side_effect = FileNotFoundError("npm")

        with self.assertRaises(ManagerError):
            self.manager.list_tree()

    @patch("subprocess.check_output")
    def test_outdated_parses_json_from_non_zero_exit(self, mock_subprocess):
        mock_subprocess.side_effect = subprocess.CalledProcessError(
            1, ["npm", "outdated"],
            output=json.dumps({"chalk": {"current": "5.3.0", "latest": "5.6.2", "location": "node_modules/chalk"}}),
        )

        outdated = self.manager.outdated()

        cmd = mock_subprocess.call_args[0][0]
        self.assertEqual(cmd[1:], ["outdated", "--all", "--json", "--omit=dev", "--omit=optional", "--include=peer"])
        self.assertEqual(outdated["chalk"]["current"], "5.3.0")

    @patch("subprocess.check_output")
    def test_outdated_clean_and_unavailable(self, mock_subprocess):
        mock_subprocess.return_value = ""
        self.assertEqual(self.manager.outdated(), {})

        mock_subprocess.side_effect = subprocess.TimeoutExpired(["npm", "outdated"], 120)
        self.assertIsNone(self.manager.outdated())

        mock_subprocess.side_effect = subprocess.CalledProcessError(1, ["npm", "outdated"], output="npm ERR! E401")
        self.assertIsNone(self.manager.outdated())

    @patch("subprocess.check_output")
    def test_npm_error_object_is_not_data(self, mock_subprocess):
        error = json.dumps({"error": {
            "code": "ENOTFOUND",
            "summary": "request to https://registry.npmjs.org/chalk failed, reason: getaddrinfo ENOTFOUND",
            "detail": "This is a problem related to network connectivity.",
        }})
        mock_subprocess.side_effect = subprocess.CalledProcessError(1, ["npm"], output=error)

        self.assertIsNone(self.manager.outdated())
        with self.assertRaises(ManagerError) as ctx:
            self.manager.list_tree()
        self.assertIn("ENOTFOUND", str(ctx.exception))

    @patch("subprocess.check_output")
    def test_audit_without_lockfile_is_unavailable(self, mock_subprocess):
        error = json.dumps({"error": {"code": "ENOLOCK", "summary": "This command requires an existing lockfile."}})
        mock_subprocess.side_effect = subprocess.CalledProcessError(1, ["npm", "audit"], output=error)

        with self.assertLogs(level="INFO") as logs:
            self.assertIsNone(self.manager.audit())

        self.assertEqual([r.levelname for r in logs.records], ["INFO"])

    @patch("subprocess.check_output")
    def test_list_tree_keeps_tree_reported_with_problems(self, mock_subprocess):
        output = json.dumps({
            "name": "fixture",
            "error": {"code": "ELSPROBLEMS", "summary": "missing: left-pad@^1.0.0"},
            "dependencies": {"left-pad": {"required": "^1.0.0", "missing": True}},
        })
        mock_subprocess.side_effect = subprocess.CalledProcessError(1, ["npm", "ls"], output=output)

        tree = self.manager.list_tree()

        self.assertTrue(tree["dependencies"]["left-pad"]["missing"])

    @patch("subprocess.check_output")
    def test_outdated_package_named_error(self, mock_subprocess):
        output = json.dumps({"error": {"current": "1.0.0", "wanted": "1.0.0", "latest": "2.0.0"}})
        mock_subprocess.side_effect = subprocess.CalledProcessError(1, ["npm", "outdated"], output=output)

        self.assertEqual(self.manager.outdated()["error"]["latest"], "2.0.0")

    @patch("subprocess.check_output")
    def test_audit(self, mock_subprocess):
        report = {"vulnerabilities": {"minimist": {"severity": "high", "nodes": ["node_modules/minimist"]}}}
        mock_subprocess.side_effect = subprocess.CalledProcessError(1, ["npm", "audit"], output=json.dumps(report))

        self.assertEqual(self.manager.audit(), report)
        cmd = mock_subprocess.call_args[0][0]
        self.assertEqual(cmd[1:3], ["audit", "--json"])

        mock_subprocess.side_effect = OSError("no npm")
        self.assertIsNone(self.manager.audit())

    @patch("subprocess.check_output")
    def test_view_latest(self, mock_subprocess):
        mock_subprocess.return_value = json.dumps({
            "dist-tags.latest": "5.6.2",
            "time": {
                "created": "2013-08-03T00:21:56.318Z",
                "modified": "2025-10-29T23:18:03.554Z",
                "5.6.2": "2025-09-08T14:47:54.486Z",
            },
        })

        release = self.manager.view_latest("chalk")

        cmd = mock_subprocess.call_args[0][0]
        self.assertEqual(cmd[1:], ["view", "chalk", "dist-tags.latest", "time", "--json"])
        self.assertEqual(release.version, "5.6.2")
        self.assertEqual(release.published, "2025-09-08T14:47:54.486Z")

    @patch("subprocess.check_output")
    def test_view_latest_failure(self, mock_subprocess):
        mock_subprocess.side_effect = subprocess.CalledProcessError(1, ["npm", "view"], output="", stderr="E404")

        self.assertIsNone(self.manager.view_latest("does-not-exist"))

    @patch("subprocess.check_output")
    def test_registry_url_from_npm_config(self, mock_subprocess):
        mock_subprocess.return_value = "https://mirror.test/\n"
        self.assertEqual(self.manager.registry_url(), "https://mirror.test/")
        self.assertEqual(mock_subprocess.call_args[0][0][1:], ["config", "get", "registry"])

        mock_subprocess.return_value = "undefined\n"
        self.assertIsNone(self.manager.registry_url("@corp"))
        self.assertEqual(mock_subprocess.call_args[0][0][1:], ["config", "get", "@corp:registry"])

        mock_subprocess.side_effect = FileNotFoundError("npm")
        self.assertIsNone(self.manager.registry_url())

    def test_load_manifest(self):
        with patch("builtins.open", mock_open(read_data='{"name": "demo", "dependencies": {"a": "^1.0.0"}}')):
            manifest = self.manager.load_manifest()

        self.assertEqual(manifest["name"], "demo")

    def test_load_manifest_errors(self):
        with patch("builtins.open", side_effect=FileNotFoundError()):
            with self.assertRaises(ManifestError):
                self.manager.load_manifest()

        with patch("builtins.open", mock_open(read_data="{not json")):
            with self.assertRaises(ManifestError):
                self.manager.load_manifest()

        with patch("builtins.open", mock_open(read_data="[]")):
            with self.assertRaises(ManifestError):
                self.manager.load_manifest()


class TestNpmHelpers(unittest.TestCase):

    def test_include_overrides_omit(self):
        self.assertEqual(npm_flags({"dev", "peer"}, {"peer"}), ["--omit=dev", "--include=peer"])
        self.assertEqual(npm_flags(set(), set()), [])

    def test_top_level_dependencies(self):
        deps = top_level_dependencies({
            "dependencies": {"react": "^18.0.0", "shared": "^1.0.0"},
            "devDependencies": {"jest": "^29.0.0", "shared": "^1.2.0"},
            "optionalDependencies": {"fsevents": "^2.3.0"},
            "peerDependencies": {"react-dom": "^18.0.0"},
        })

        self.assertEqual(deps["react"], ("^18.0.0", {"prod"}))
        self.assertEqual(deps["jest"], ("^29.0.0", {"dev"}))
        self.assertEqual(deps["shared"], ("^1.2.0", {"prod", "dev"}))
        self.assertEqual(deps["fsevents"][1], {"optional"})
        self.assertEqual(deps["react-dom"][1], {"peer"})

    def test_malformed_sections_are_ignored(self):
        self.assertEqual(top_level_dependencies({"dependencies": ["a"], "devDependencies": None}), {})

    @patch("subrank.managers.os.listdir")
    def test_detect_manager(self, mock_listdir):
        mock_listdir.return_value = ["package.json", "README.md"]
        self.assertIsInstance(detect_manager("/tmp/project"), NodeManager)

        mock_listdir.return_value = ["go.mod"]
        self.assertIsNone(detect_manager("/tmp/project"))


if __name__ == "__main__":
    unittest.main()
