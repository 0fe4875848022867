import os
import shutil
import tempfile
import unittest

import yaml

from nfdrain.config.config_manager import DEFAULT_CONFIG, ConfigManager


class TestConfigManager(unittest.TestCase):
    """测试配置加载与访问"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _write_config(self, data):
        with open(os.path.join(self.test_dir, "config.yaml"), "w") as f:
            f.write(data if isinstance(data, str) else yaml.dump(data))

    def test_defaults_without_file(self):
        config = ConfigManager(config_dir=self.test_dir)
        self.assertEqual(config.get("netqueue.queue_num"), 100)
        self.assertEqual(config.get("netqueue.addresses"), [])
        self.assertEqual(config.get("monitoring.proc_path"), "/proc/net/netfilter/nfnetlink_queue")
        self.assertIsNone(config.get("netqueue.missing"))
        self.assertEqual(config.get("netqueue.missing", 5), 5)

    def test_loaded_values_merged_with_defaults(self):
        self._write_config({"netqueue": {"addresses": ["10.0.0.1"], "queue_num": 7}})
        config = ConfigManager(config_dir=self.test_dir)

        self.assertEqual(config.get("netqueue.addresses"), ["10.0.0.1"])
        self.assertEqual(config.get("netqueue.queue_num"), 7)
        self.assertEqual(config.get("netqueue.max_packets"), 65536)
        self.assertEqual(config.get("firewall.retries"), 0)

    def test_invalid_yaml_falls_back_to_defaults(self):
        self._write_config("netqueue: [unclosed\n")
        with self.assertLogs("config_manager", level="ERROR"):
            config = ConfigManager(config_dir=self.test_dir)
        self.assertEqual(config.as_dict(), DEFAULT_CONFIG)

    def test_set_and_save(self):
        config = ConfigManager(config_dir=self.test_dir)
        config.set("netqueue.addresses", ["10.0.0.2"])
        config.set("custom.nested.value", 3)
        config.save()

        reloaded = ConfigManager(config_dir=self.test_dir)
        self.assertEqual(reloaded.get("netqueue.addresses"), ["10.0.0.2"])
        self.assertEqual(reloaded.get("custom.nested.value"), 3)

    def test_defaults_not_shared_between_instances(self):
        first = ConfigManager(config_dir=self.test_dir)
        first.set("netqueue.queue_num", 9)
        second = ConfigManager(config_dir=self.test_dir)
        self.assertEqual(second.get("netqueue.queue_num"), 100)


if __name__ == '__main__':
    unittest.main()
