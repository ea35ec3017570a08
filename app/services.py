"""Service singletons (initialized once) used across routers.

This avoids circular imports between routers and keeps construction logic
away from `main.py` for cleaner testing. Tests swap these attributes out
(e.g. ``services.message_processor``) rather than patching constructors.
"""
import logging
from app.config import get_settings
from messaging.whatsapp_client import WhatsAppClient
from app.application.command_processor import BirthdayMessageProcessor, sqlalchemy_repositories
from app.domain.intent_classifier import NullIntentClassifier
from app.infrastructure.llm_classifier import AnthropicIntentClassifier
from app.infrastructure.tone_rewriter import AnthropicToneRewriter, PassthroughRewriter

settings = get_settings()
if settings.environment != 'testing':
    # Re-evaluate in case tests loaded after initial import forced test mode
    settings = get_settings(refresh=True)
logger = logging.getLogger(__name__)


class _PlaceholderClient:
    """Stands in for the WhatsApp client when it cannot be constructed."""

    def __init__(self):
        self.enabled = False

    async def send_message(self, *args, **kwargs) -> bool:
        return False


# Initialize external clients
try:
    whatsapp_client = WhatsAppClient(
        access_token=settings.whatsapp_token,
        phone_number_id=settings.phone_number_id,
        api_version=settings.whatsapp_api_version,
    )
    logger.info("📱 WhatsApp client initialized")
except Exception as e:
    logger.warning(f"⚠️  Failed to initialize WhatsApp client: {e}")
    whatsapp_client = _PlaceholderClient()

if settings.llm_enabled:
    try:
        intent_classifier = AnthropicIntentClassifier(
            api_key=settings.anthropic_api_key,
            model=settings.classifier_model,
        )
        logger.info(f"🧠 Claude intent classifier ready ({settings.classifier_model})")
    except Exception as e:
        logger.warning(f"⚠️  Failed to initialize Claude classifier: {e}. Deterministic resolvers only.")
        intent_classifier = NullIntentClassifier()
else:
    logger.info("🧠 No ANTHROPIC_API_KEY, running with deterministic resolvers only")
    intent_classifier = NullIntentClassifier()

if settings.llm_enabled and settings.enable_tone_rewrite:
    try:
        tone_rewriter = AnthropicToneRewriter(
            api_key=settings.anthropic_api_key,
            model=settings.rewrite_model,
        )
    except Exception as e:
        logger.warning(f"⚠️  Failed to initialize tone rewriter: {e}")
        tone_rewriter = PassthroughRewriter()
else:
    tone_rewriter = PassthroughRewriter()

message_processor = BirthdayMessageProcessor(
    classifier=intent_classifier,
    rewriter=tone_rewriter,
    repository_factory=sqlalchemy_repositories(settings.default_timezone),
    fuzzy_min_score=settings.fuzzy_min_score,
    fuzzy_max_query_length=settings.fuzzy_max_query_length,
    default_timezone=settings.default_timezone,
)
logger.info("🎂 Birthday message processor ready")
