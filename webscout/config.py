from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter / OpenAI-compatible reasoning endpoint
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o-mini"
    openrouter_model: str = ""
    llm_timeout_seconds: float = 60.0

    # Search provider
    search_provider: str = "brave"  # brave | jina
    brave_api_key: str = ""
    jina_api_key: str = ""
    search_fallback_to_jina: bool = True
    search_timeout_seconds: float = 30.0

    # Static extraction
    static_timeout_seconds: float = 8.0
    static_retry_max: int = 2
    static_backoff_base_seconds: float = 0.5
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Dynamic extraction
    browser_headless: bool = True
    browser_executable_path: str = ""
    browser_idle_timeout_seconds: float = 600.0
    browser_launch_timeout_ms: int = 45000
    navigation_timeout_ms: int = 12000
    navigation_retry_delay_seconds: float = 1.0
    dynamic_settle_ms: int = 3000
    dynamic_heavy_settle_ms: int = 7000
    dynamic_settle_jitter_ms: int = 2000
    lazy_scroll_max_iterations: int = 3

    # Coordinator
    extraction_cache_ttl_seconds: float = 600.0
    extraction_cache_sweep_seconds: float = 60.0
    batch_max_concurrent: int = 3
    batch_chunk_delay_seconds: float = 1.0

    # Quality gate (shared by coordinator and workflow validation)
    quality_min_chars: int = 100
    quality_max_nav_ratio: float = 0.3
    generic_block_max_nav_ratio: float = 0.2

    # Agent task store
    task_max_tasks: int = 100
    task_timeout_seconds: float = 1800.0
    task_sweep_interval_seconds: float = 300.0

    # Workflow
    workflow_max_urls: int = 5
    workflow_search_limit: int = 10
    workflow_extract_max_length: int = 4000
    synthesis_source_char_budget: int = 3000
    synthesis_max_tokens: int = 2000
    blocked_domains: list[str] = [
        "yelp.com",
        "tripadvisor.com",
        "facebook.com",
        "twitter.com",
        "x.com",
        "linkedin.com",
        "instagram.com",
        "tiktok.com",
        "pinterest.com",
        "beeradvocate.com",
        "ubereats.com",
        "bit.ly",
        "tinyurl.com",
        "t.co",
        "goo.gl",
        "ow.ly",
        "tiny.cc",
        "is.gd",
        "buff.ly",
    ]

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"
    log_to_file: bool = True
    prompts_path: str | None = None  # override the bundled prompts.json

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def blocked_domain_set(self) -> frozenset[str]:
        return frozenset(d.strip().lower() for d in self.blocked_domains if d.strip())


settings = Settings()
