"""
LLM 模块异常定义

按错误种类划分 LLM 调用过程中的异常，provider 负责将 SDK 异常映射到对应种类。
"""


class LLMError(Exception):
    """LLM 模块基础异常类

    所有 LLM 相关异常的基类；无法归类的错误直接使用此类。
    """


class LLMConfigError(LLMError):
    """LLM 配置错误

    典型场景：
    - 缺少必需的配置项（如 api_key）
    - 配置参数格式错误
    """


class LLMModelNotFoundError(LLMError):
    """LLM 模型未找到错误

    典型场景：
    - 模型类型未注册（如尝试创建不存在的 provider）
    """


class LLMAuthError(LLMError):
    """认证失败

    典型场景：
    - API Key 无效或已过期
    - 无权访问该模型
    """


class LLMRateLimitError(LLMError):
    """LLM 速率限制错误

    直接抛出给调用方，不做重试。

    典型场景：
    - 每分钟请求数超过限制
    - token 配额耗尽
    """


class LLMBadRequestError(LLMError):
    """请求参数错误

    典型场景：
    - 参数超出有效范围
    - 上下文长度超过模型限制
    """


class LLMServerError(LLMError):
    """服务端错误（5xx）"""


class LLMTransportError(LLMError):
    """网络传输错误

    典型场景：
    - 连接失败
    - 连接被中断
    """


class LLMTimeoutError(LLMTransportError):
    """LLM 请求超时错误"""


class LLMInvalidResponseError(LLMError):
    """响应格式异常

    典型场景：
    - 响应中没有 choices
    - 流式数据无法解析
    """


class LLMContentNotFoundError(LLMError):
    """响应中缺少期望的内容"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Content not found in response: {path}")


class LLMCancelledError(LLMError):
    """生成被调用方取消（流式回调返回 False）"""


__all__ = [
    "LLMError",
    "LLMConfigError",
    "LLMModelNotFoundError",
    "LLMAuthError",
    "LLMRateLimitError",
    "LLMBadRequestError",
    "LLMServerError",
    "LLMTransportError",
    "LLMTimeoutError",
    "LLMInvalidResponseError",
    "LLMContentNotFoundError",
    "LLMCancelledError",
]
