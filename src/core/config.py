from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("invoice-field-extractor", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # LLM (OpenAI-compatible chat completions)
    # When LLM_API_KEY is unset the OpenAI SDK falls back to OPENAI_API_KEY
    llm_base_url: str | None = Field(default=None, alias="LLM_BASE_URL")
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")
    llm_model: str = Field("gpt-4.1-mini", alias="LLM_MODEL")
    llm_store: bool = Field(True, alias="LLM_STORE")

    # Object storage (Supabase Storage REST API)
    storage_url: str | None = Field(default=None, alias="STORAGE_URL")
    storage_api_key: str | None = Field(default=None, alias="STORAGE_API_KEY")
    storage_bucket: str = Field("invoices", alias="STORAGE_BUCKET")
    storage_prefix: str = Field("uploads/", alias="STORAGE_PREFIX")

    # OCR fallback for PDFs without a text layer: "tesseract" or "azure"
    ocr_backend: str = Field("tesseract", alias="OCR_BACKEND")
    ocr_language: str = Field("eng", alias="OCR_LANGUAGE")

    # Azure Document Intelligence (only used when OCR_BACKEND=azure)
    az_di_endpoint: str | None = Field(default=None, alias="AZ_DI_ENDPOINT")
    az_di_api_key: str | None = Field(default=None, alias="AZ_DI_API_KEY")

    # Upload limits
    max_files: int = Field(10, alias="MAX_FILES")
    max_fields: int = Field(15, alias="MAX_FIELDS")

    # Directory for spooled uploads (None = system temp dir)
    upload_tmp_dir: str | None = Field(default=None, alias="UPLOAD_TMP_DIR")

    # CORS allowed origins (comma-separated list for production deployment)
    cors_origins: str = Field("http://localhost:3000,http://127.0.0.1:3000", alias="CORS_ORIGINS")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

settings = Settings()
