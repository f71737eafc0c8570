import logging

try:
    from .booking import whatsapp_link
    from .content import DEFAULT_SETTINGS
    from .exceptions import ChatUnavailable
except ImportError:  # pragma: no cover - fallback when running from barber_club/ cwd
    from booking import whatsapp_link
    from content import DEFAULT_SETTINGS
    from exceptions import ChatUnavailable

logger = logging.getLogger(__name__)

CHAT_FACTORY_KEY = 'barber_club.chat_factory'
EMPTY_REPLY = (
    'Desculpe, tive um problema ao processar sua mensagem. '
    'Tente novamente ou nos chame no WhatsApp!'
)
ERROR_REPLY = 'Ocorreu um erro. Por favor, tente nos contatar diretamente pelo WhatsApp.'

SYSTEM_INSTRUCTION_TEMPLATE = """Você é o assistente virtual da Fonseca Barber Club.
Seu objetivo é ajudar os clientes com dúvidas sobre a barbearia e incentivá-los a agendar um horário via WhatsApp.
A barbearia oferece:
- Corte de Cabelo (Degradê, Social, etc.) - R$ 50
- Barba (Toalha quente, alinhamento) - R$ 40
- Combo (Corte + Barba) - R$ 80
- Ambiente: Cadeiras de couro, cerveja gelada, sinuca e música boa.
Localização: {address}.
Horário: Seg-Sáb, 09h às 20h.

Sempre seja cordial, use um tom masculino e profissional.
Se o usuário quiser agendar, forneça o link do WhatsApp: {whatsapp_url}"""


def build_system_instruction(settings=None):
    settings = {**DEFAULT_SETTINGS, **(settings or {})}
    return SYSTEM_INSTRUCTION_TEMPLATE.format(
        address=settings.get('address') or DEFAULT_SETTINGS['address'],
        whatsapp_url=whatsapp_link(settings.get('whatsapp_number')),
    )


class ChatAssistant:
    """Forwards visitor messages to Gemini with the barbershop persona."""

    def __init__(self, api_key, model, *, settings=None, timeout=30, generate=None):
        self._timeout = timeout
        self._system_instruction = build_system_instruction(settings)
        if generate is not None:
            self._generate = generate
            return
        if not api_key:
            raise ChatUnavailable('Assistente indisponível: GEMINI_API_KEY não configurada.')
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        gen_model = genai.GenerativeModel(
            model_name=model,
            system_instruction=self._system_instruction,
        )

        def generate(message):
            response = gen_model.generate_content(message, request_options={'timeout': self._timeout})
            return response.text

        self._generate = generate

    @property
    def system_instruction(self):
        return self._system_instruction

    def reply(self, message):
        text = self._generate(message)
        text = (text or '').strip()
        if not text:
            logger.warning('Chat model returned an empty reply.')
            return EMPTY_REPLY
        return text
