"""
MQTTClient 单元测试

测试内容：
- 连接管理与主题订阅
- 请求发布与 Future 响应
- 推送分发、有界队列与流结束
- 断开时挂起请求失败
"""
import unittest
from unittest.mock import Mock, patch
import json
import threading
from concurrent.futures import Future
import sys
from pathlib import Path

# 添加项目路径
sys.path.insert(0, str(Path(__file__).parent.parent))

from rcsdk.core.errors import DeviceError, TransportUnavailable
from rcsdk.core.mqtt_client import MQTTClient
from rcsdk.core.transport import TelemetryKind


def make_msg(payload):
    msg = Mock()
    msg.payload.decode.return_value = json.dumps(payload)
    return msg


class TestMQTTClient(unittest.TestCase):
    """测试 MQTTClient 核心功能"""

    def setUp(self):
        """测试前准备"""
        self.gateway_sn = "TEST_SN_123"
        self.mqtt_config = {
            'host': '127.0.0.1',
            'port': 1883,
            'username': 'test_user',
            'password': 'test_pass'
        }
        self.client = MQTTClient(self.gateway_sn, self.mqtt_config, queue_size=2)
        patcher = patch('rcsdk.core.mqtt_client.console')
        patcher.start()
        self.addCleanup(patcher.stop)

    def connect(self):
        patcher = patch('rcsdk.core.mqtt_client.mqtt.Client')
        mock_mqtt_client = patcher.start()
        self.addCleanup(patcher.stop)
        mock_client_instance = Mock()
        mock_mqtt_client.return_value = mock_client_instance
        self.client.connect()
        return mock_mqtt_client, mock_client_instance

    def test_init(self):
        """测试初始化"""
        self.assertEqual(self.client.gateway_sn, self.gateway_sn)
        self.assertEqual(self.client.config, self.mqtt_config)
        self.assertIsNone(self.client.client)
        self.assertFalse(self.client.connected)
        self.assertEqual(self.client.pending_requests, {})

    def test_connect(self):
        """测试 MQTT 连接与订阅"""
        mock_mqtt_client, instance = self.connect()

        _, kwargs = mock_mqtt_client.call_args
        self.assertEqual(kwargs['client_id'], f"python-rc-{self.gateway_sn}")
        instance.username_pw_set.assert_called_once_with('test_user', 'test_pass')
        instance.connect.assert_called_once_with('127.0.0.1', 1883, 60)
        instance.loop_start.assert_called_once()

        topics = [c.args[0] for c in instance.subscribe.call_args_list]
        self.assertEqual(topics, [
            f"thing/product/{self.gateway_sn}/services_reply",
            f"thing/product/{self.gateway_sn}/rc/up",
            f"thing/product/{self.gateway_sn}/events",
        ])
        self.assertEqual(instance.on_message, self.client._on_message)
        self.assertTrue(self.client.connected)

    def test_send_request_when_disconnected(self):
        """测试未连接时立即失败"""
        with self.assertRaises(TransportUnavailable):
            self.client.send_request("rc_mode_get", {})

    @patch('uuid.uuid4', return_value='tid-123456789')
    def test_send_request_publishes(self, mock_uuid):
        """测试请求报文格式"""
        _, instance = self.connect()

        future = self.client.send_request("rc_mode_set", {"mode": 0})

        self.assertIsInstance(future, Future)
        topic, body = instance.publish.call_args.args
        self.assertEqual(topic, f"thing/product/{self.gateway_sn}/services")
        self.assertEqual(instance.publish.call_args.kwargs['qos'], 1)
        payload = json.loads(body)
        self.assertEqual(payload['tid'], 'tid-123456789')
        self.assertEqual(payload['bid'], 'tid-123456789')
        self.assertEqual(payload['method'], 'rc_mode_set')
        self.assertEqual(payload['data'], {"mode": 0})
        self.assertIn('timestamp', payload)
        self.assertIn('tid-123456789', self.client.pending_requests)

    def test_reply_resolves_future(self):
        """测试回包按 tid 匹配"""
        self.connect()
        future = self.client.publish("rc_mode_get", {}, "tid-1")

        self.client._on_message(None, None, make_msg({
            "tid": "tid-1",
            "info": {"code": 0},
            "data": {"result": 0, "output": {"mode": 1}},
        }))

        self.assertEqual(future.result(timeout=1), {"result": 0, "output": {"mode": 1}})
        self.assertNotIn("tid-1", self.client.pending_requests)

    def test_reply_error_code(self):
        """测试 info.code != 0"""
        self.connect()
        future = self.client.publish("rc_mode_get", {}, "tid-2")

        self.client._on_message(None, None, make_msg({
            "tid": "tid-2",
            "info": {"code": 314001, "message": "not supported"},
        }))

        with self.assertRaises(DeviceError) as context:
            future.result(timeout=1)
        self.assertEqual(context.exception.code, 314001)

    def test_unknown_tid_ignored(self):
        """测试未知 tid 不影响挂起请求"""
        self.connect()
        future = self.client.publish("rc_mode_get", {}, "tid-3")

        self.client._on_message(None, None, make_msg({"tid": "other", "data": {}}))

        self.assertFalse(future.done())

    def test_cancelled_future_cleans_up(self):
        """测试调用方取消后 tid 被清理"""
        self.connect()
        future = self.client.publish("rc_mode_get", {}, "tid-4")

        future.cancel()

        self.assertNotIn("tid-4", self.client.pending_requests)

    def test_malformed_message(self):
        """测试非法 JSON 不抛出"""
        msg = Mock()
        msg.payload.decode.return_value = "not json"
        self.client._on_message(None, None, msg)

    def test_push_dispatch(self):
        """测试推送按 method 分发，同类保持顺序"""
        self.connect()
        stream = self.client.subscribe_telemetry(TelemetryKind.BATTERY)

        for percent in (80, 79):
            self.client._on_message(None, None, make_msg({
                "method": "rc_battery_push",
                "data": {"remaining_energy_percent": percent},
            }))

        self.assertEqual(next(stream)['remaining_energy_percent'], 80)
        self.assertEqual(next(stream)['remaining_energy_percent'], 79)

    def test_event_with_tid_dispatched(self):
        """事件主题上的消息即使带 tid 也按推送处理"""
        self.connect()
        stream = self.client.subscribe_telemetry(TelemetryKind.SLAVE_LEFT)
        msg = make_msg({"tid": "evt-1", "method": "slave_left", "data": {"slave_id": 3}})
        msg.topic = self.client.events_topic

        self.client._on_message(None, None, msg)

        self.assertEqual(next(stream), {"slave_id": 3})

    def test_push_other_kind_not_delivered(self):
        """测试订阅者只收到自己订阅的类型"""
        self.connect()
        self.client.subscribe_telemetry(TelemetryKind.GPS)
        q = self.client.subscribers[TelemetryKind.GPS][0]

        self.client._on_message(None, None, make_msg({
            "method": "rc_battery_push", "data": {},
        }))

        self.assertTrue(q.empty())

    def test_full_queue_drops_sample(self):
        """测试队列满时丢弃新样本"""
        self.connect()
        self.client.subscribe_telemetry(TelemetryKind.HARDWARE_STATE)

        for i in range(4):
            self.client._dispatch(TelemetryKind.HARDWARE_STATE, {"left_wheel": i})

        q = self.client.subscribers[TelemetryKind.HARDWARE_STATE][0]
        self.assertEqual(q.qsize(), 2)
        self.assertEqual(self.client.dropped_samples, 2)

    def test_disconnect_ends_streams(self):
        """测试断开后订阅流结束、挂起请求失败"""
        _, instance = self.connect()
        stream = self.client.subscribe_telemetry(TelemetryKind.GPS)
        future = self.client.publish("rc_mode_get", {}, "tid-5")

        self.client.disconnect()

        instance.loop_stop.assert_called_once()
        instance.disconnect.assert_called_once()
        self.assertEqual(list(stream), [])
        with self.assertRaises(TransportUnavailable):
            future.result(timeout=1)

    def test_subscribe_after_close(self):
        """测试关闭后订阅得到空流"""
        self.connect()
        self.client.disconnect()

        self.assertEqual(list(self.client.subscribe_telemetry(TelemetryKind.GPS)), [])

    def test_stream_blocks_until_sample(self):
        """测试流惰性等待样本"""
        self.connect()
        stream = self.client.subscribe_telemetry(TelemetryKind.FOCUS_STATE)
        received = []

        thread = threading.Thread(target=lambda: received.append(next(stream)))
        thread.start()
        self.client._dispatch(TelemetryKind.FOCUS_STATE, {"control_type": 1})
        thread.join(timeout=2)

        self.assertEqual(received, [{"control_type": 1}])


if __name__ == '__main__':
    unittest.main()
