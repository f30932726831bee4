"""Settings loader with .env support."""

from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.utils.env import clean_env


class Settings(BaseSettings):
    """Gateway configuration."""

    # --- 调用模式 ---
    ai_execution_mode: str = Field(default="backend", validation_alias="AI_EXECUTION_MODE")
    app_env: str = Field(default="development", validation_alias="APP_ENV")
    api_base_url: Optional[str] = Field(default=None, validation_alias="API_BASE_URL")
    backend_dev_url: str = Field(default="http://127.0.0.1:5000", validation_alias="BACKEND_DEV_URL")
    app_origin: Optional[str] = Field(default=None, validation_alias="APP_ORIGIN")

    # --- 网络与重试 ---
    ai_request_timeout: Optional[float] = Field(default=None, validation_alias="AI_REQUEST_TIMEOUT")
    ai_max_retries: int = Field(default=2, validation_alias="AI_MAX_RETRIES")
    ai_retry_delay_seconds: float = Field(default=1.0, validation_alias="AI_RETRY_DELAY_SECONDS")

    # --- 前端直连 Provider ---
    gemini_api_key: Optional[str] = Field(default=None, validation_alias="GEMINI_API_KEY")
    gemini_endpoint: Optional[str] = Field(default=None, validation_alias="GEMINI_ENDPOINT")
    gemini_model: Optional[str] = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")

    openai_api_key: Optional[str] = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_endpoint: Optional[str] = Field(default=None, validation_alias="OPENAI_ENDPOINT")
    openai_target_url: Optional[str] = Field(default=None, validation_alias="OPENAI_TARGET_URL")
    openai_model: Optional[str] = Field(default=None, validation_alias="OPENAI_MODEL")

    deepseek_api_key: Optional[str] = Field(default=None, validation_alias="DEEPSEEK_API_KEY")
    deepseek_endpoint: Optional[str] = Field(default=None, validation_alias="DEEPSEEK_ENDPOINT")
    deepseek_model: Optional[str] = Field(default=None, validation_alias="DEEPSEEK_MODEL")

    ali_api_key: Optional[str] = Field(default=None, validation_alias="ALI_API_KEY")
    ali_endpoint: Optional[str] = Field(default=None, validation_alias="ALI_ENDPOINT")
    ali_target_url: Optional[str] = Field(default=None, validation_alias="ALI_TARGET_URL")
    ali_model: Optional[str] = Field(default=None, validation_alias="ALI_MODEL")

    depocr_api_key: Optional[str] = Field(default=None, validation_alias="DEPOCR_API_KEY")
    depocr_endpoint: Optional[str] = Field(default=None, validation_alias="DEPOCR_ENDPOINT")
    depocr_model: Optional[str] = Field(default=None, validation_alias="DEPOCR_MODEL")

    doubao_api_key: Optional[str] = Field(default=None, validation_alias="DOUBAO_API_KEY")
    doubao_endpoint: Optional[str] = Field(default=None, validation_alias="DOUBAO_ENDPOINT")
    doubao_model: Optional[str] = Field(default=None, validation_alias="DOUBAO_MODEL")

    # --- 服务 ---
    cors_origins: str = Field(default="", validation_alias="CORS_ORIGINS")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file_path: Optional[str] = Field(default=None, validation_alias="LOG_FILE_PATH")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
        populate_by_name=True,
    )

    @property
    def backend_base_url(self) -> str:
        """生产环境拼接外部地址 + /api，本地开发走固定代理地址。"""

        if self.app_env.lower() == "production":
            return f"{clean_env(self.api_base_url) or ''}/api"
        return self.backend_dev_url.rstrip("/")

    @property
    def allowed_origins(self) -> List[str]:
        return [item.strip() for item in self.cors_origins.split(",") if item.strip()]

    def provider_env(self) -> Dict[str, Optional[str]]:
        """导出 Provider 相关的原始配置值，键名与环境变量一致。"""

        names = [
            "GEMINI_API_KEY", "GEMINI_ENDPOINT", "GEMINI_MODEL",
            "OPENAI_API_KEY", "OPENAI_ENDPOINT", "OPENAI_TARGET_URL", "OPENAI_MODEL",
            "DEEPSEEK_API_KEY", "DEEPSEEK_ENDPOINT", "DEEPSEEK_MODEL",
            "ALI_API_KEY", "ALI_ENDPOINT", "ALI_TARGET_URL", "ALI_MODEL",
            "DEPOCR_API_KEY", "DEPOCR_ENDPOINT", "DEPOCR_MODEL",
            "DOUBAO_API_KEY", "DOUBAO_ENDPOINT", "DOUBAO_MODEL",
        ]
        return {name: getattr(self, name.lower()) for name in names}


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
