"""NiceGUI chat interface rendering a StreamingChatClient's conversation."""

from nicegui import Client, ui

from src.client.chat_client import StreamingChatClient
from src.models.schemas import Message, MessageStatus, Role

EXAMPLE_PROMPTS = [
    "Should I hire Oussama Zeddam?",
    "How does blockchain work?",
    "Explain quantum computing",
    "What is machine learning?",
    "Describe neural networks",
]

CUSTOM_CSS = """
<style>
    body { background: #f5f5f5; }
    .message-user { background: linear-gradient(135deg, #09AC75 0%, #07885d 100%); color: white; }
    .message-assistant { background: #f3f4f6; color: #1f2937; }
    .message-failed { border: 1px solid #f87171; }
</style>
"""


def speaker_label(message: Message) -> str:
    return "AI Assistant" if message.role is Role.ASSISTANT else "You"


def render_markdown(message: Message) -> str:
    """Markdown shown for a message, with partial or failed replies tagged."""
    if message.status is MessageStatus.PENDING:
        return "_Thinking..._"
    if message.status is MessageStatus.FAILED:
        note = f"**Response incomplete:** {message.error or 'unknown error'}"
        return f"{message.content}\n\n{note}" if message.content else note
    return message.content


def bubble_classes(message: Message) -> str:
    bubble = "message-assistant" if message.role is Role.ASSISTANT else "message-user"
    if message.status is MessageStatus.FAILED:
        bubble += " message-failed"
    return f"max-w-[80%] px-4 py-3 rounded-2xl shadow-sm {bubble}"


def bind_lifecycle(client: Client, chat: StreamingChatClient) -> None:
    """Release the chat client when the page itself is deleted.

    Socket drops that reconnect within NiceGUI's reconnect timeout keep
    the page, so the chat client has to survive them.
    """
    client.on_delete(chat.aclose)


@ui.page("/")
def chat_page(client: Client) -> None:
    """Main chat page: one StreamingChatClient per browser tab."""
    ui.add_head_html(CUSTOM_CSS)
    chat = StreamingChatClient()

    @ui.refreshable
    def message_list(messages: tuple[Message, ...] = ()) -> None:
        if not messages:
            ui.label("Start a conversation").classes("w-full text-center text-gray-400 py-16")
            return
        for message in messages:
            align = "justify-start" if message.role is Role.ASSISTANT else "justify-end"
            with ui.row().classes(f"w-full {align}"):
                with ui.column().classes(f"gap-1 {bubble_classes(message)}"):
                    ui.label(speaker_label(message)).classes("text-xs font-medium opacity-75")
                    ui.markdown(render_markdown(message)).classes("text-sm")

    def set_busy(busy: bool) -> None:
        for control in [input_field, send_btn, *prompt_buttons]:
            control.set_enabled(not busy)

    def notify(notice: str) -> None:
        with page:
            ui.notify(notice, type="negative")

    async def send_message() -> None:
        text = input_field.value or ""
        if not text.strip() or chat.is_streaming:
            return
        input_field.value = ""
        set_busy(True)
        try:
            await chat.submit(text)
        finally:
            set_busy(False)

    def use_prompt(prompt: str) -> None:
        input_field.value = prompt

    with ui.column().classes("w-full max-w-3xl mx-auto p-6 gap-4") as page:
        ui.label("AI Chat").classes("text-xl font-semibold")

        with ui.scroll_area().classes("w-full h-[60vh] bg-white rounded-xl p-4"):
            message_list()

        with ui.row().classes("w-full gap-3 items-end bg-white p-4 rounded-xl"):
            input_field = (
                ui.input(placeholder="Type your message...")
                .props("outlined dense")
                .classes("flex-grow")
                .on("keydown.enter", send_message)
            )
            send_btn = ui.button("Send", on_click=send_message)

        with ui.column().classes("w-full bg-white p-4 rounded-xl gap-2"):
            ui.label("Example Prompts").classes("text-sm font-medium text-gray-700")
            with ui.row().classes("gap-2"):
                prompt_buttons = [
                    ui.button(prompt, on_click=lambda p=prompt: use_prompt(p)).props("flat dense no-caps")
                    for prompt in EXAMPLE_PROMPTS
                ]

    chat.subscribe(message_list.refresh)
    chat.on_error(notify)
    bind_lifecycle(client, chat)
