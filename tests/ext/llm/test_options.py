"""
测试调用参数合并与流式回调
"""

import pytest

from ext.llm.options import CallOptions, ResponseFormat, ResponseFormatTypeEnum, StreamOption
from ext.llm.types import FunctionDefinition


class TestMergeOptions:
    """测试 CallOptions.merge_options"""

    def test_override_set_fields(self):
        """测试新参数中已设置的字段覆盖旧值"""
        base = CallOptions(temperature=0.2, max_tokens=100, stop_words=["\n"])
        merged = base.merge_options(CallOptions(temperature=0.9, top_p=0.5))

        assert merged.temperature == 0.9
        assert merged.top_p == 0.5
        assert merged.max_tokens == 100
        assert merged.stop_words == ["\n"]
        assert base.temperature == 0.2
        print("✓ 已设置字段覆盖，未设置字段保留")

    def test_lists_replaced(self):
        """测试列表字段整体替换而非追加"""
        first = FunctionDefinition(name="a")
        second = FunctionDefinition(name="b")
        merged = CallOptions(functions=[first], stop_words=["x"]).merge_options(
            CallOptions(functions=[second], stop_words=["y"]),
        )

        assert [function.name for function in merged.functions] == ["b"]
        assert merged.stop_words == ["y"]

    def test_merge_empty(self):
        base = CallOptions(seed=7)
        assert base.merge_options(CallOptions()) == base

    def test_response_format(self):
        schema = {"type": "object", "properties": {"a": {"type": "string"}}}
        json_schema = ResponseFormat(type=ResponseFormatTypeEnum.json_schema, json_schema=schema)

        assert json_schema.to_dict() == {"type": "json_schema", "json_schema": schema}
        assert ResponseFormat().to_dict() == {"type": "text"}


class TestStreamOption:
    """测试流式回调"""

    @pytest.mark.asyncio
    async def test_emit(self):
        """测试回调按顺序执行，返回 False 时停止"""
        received: list[str] = []

        async def sink(chunk: str) -> bool:
            received.append(chunk)
            return chunk != "stop"

        option = StreamOption(streaming_func=sink)

        assert await option.emit("a") is True
        assert await option.emit("stop") is False
        assert received == ["a", "stop"]
        print("✓ 回调返回 False 表示终止")

    @pytest.mark.asyncio
    async def test_emit_none_result(self):
        async def sink(chunk: str) -> None:
            return None

        assert await StreamOption(streaming_func=sink).emit("a") is True
        assert await StreamOption().emit("a") is True

    def test_streaming_func_property(self):
        async def sink(chunk: str) -> None: ...

        assert CallOptions().streaming_func is None
        assert CallOptions(stream_option=StreamOption(streaming_func=sink)).streaming_func is sink
