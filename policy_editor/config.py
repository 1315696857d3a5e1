"""
Configuration for the Routing Policy Editor.
"""

from enum import Enum
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NodeCategory(str, Enum):
    """Node category types."""

    ENTRY = "entry"
    SOURCE = "source"
    ACTION = "action"
    ROUTING = "routing"
    AI = "ai"
    INTEGRATION = "integration"
    UTILITY = "utility"
    TERMINAL = "terminal"


class NodeKind(str, Enum):
    """Registered node kinds."""

    # Entry
    INIT = "init"

    # Sources
    INPUT = "input"
    EXTENSION_NUMBER = "extensionNumber"
    INBOUND_MESSAGE = "inboundMessage"

    # Actions
    SPEAK = "speak"
    GET_INFO = "getInfo"
    CALL_QUEUE = "callQueue"
    HUNT_GROUP = "huntGroup"
    CONNECT_CALL = "connectCall"
    RECORD_CALL = "recordCall"
    NOTIFY = "notify"
    REQUEST_SKILL = "requestSkill"

    # Routing
    RULE = "rule"
    SWITCHBOARD = "switchboard"
    ROUTER = "router"

    # AI
    AI_AGENT = "aiAgent"
    OMNI_CHANNEL_FLOW = "omniChannelFlow"

    # Integrations
    MANAGE_PROPERTIES = "manageProperties"
    QUERY_OBJECT = "queryObject"
    CREATE_RECORD = "createRecord"

    # Utility
    DEBUG = "debug"

    # Terminal
    VOICEMAIL = "voicemail"
    TO_POLICY = "toPolicy"
    OUTPUT = "output"


class DataType(str, Enum):
    """Data types for node fields."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    SELECT = "select"
    ANY = "any"


class PolicySource(str, Enum):
    """Direction of traffic a policy handles."""

    INBOUND = "Inbound"
    OUTBOUND = "Outbound"


class PolicyType(str, Enum):
    """Routing policy types."""

    CALL = "Call"
    DIGITAL = "Digital"
    OUTBOUND = "Outbound"
    IVR = "IVR"
    QUEUE = "Queue"
    HUNT = "Hunt"


class PolicyStatus(str, Enum):
    """Routing policy status values."""

    DRAFT = "Draft"
    DISABLED = "Disabled"
    ENABLED = "Enabled"


class Severity(str, Enum):
    """Validation issue severity."""

    FATAL = "fatal"
    WARNING = "warning"


class IssueKind(str, Enum):
    """Validation issue kinds."""

    MISSING_ENTRY_NODE = "MissingEntryNode"
    MULTIPLE_ENTRY_NODES = "MultipleEntryNodes"
    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    INVALID_FIELD_TYPE = "InvalidFieldType"
    UNREACHABLE_NODE = "UnreachableNode"
    TOO_MANY_OUTGOING_EDGES = "TooManyOutgoingEdges"
    NODE_NOT_FOUND = "NodeNotFound"
    UNLABELED_BRANCH = "UnlabeledBranch"
    UNKNOWN_NODE_KIND = "UnknownNodeKind"


class CanvasActionType(str, Enum):
    """Editor actions applied to an open graph."""

    ADD_NODE = "add_node"
    UPDATE_NODE = "update_node"
    MOVE_NODE = "move_node"
    REMOVE_NODE = "remove_node"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    SET_VIEWPORT = "set_viewport"


class EditorConfig(BaseSettings):
    """Graph editor configuration."""

    model_config = SettingsConfigDict(env_prefix="EDITOR_")

    # Limits
    max_nodes_per_graph: int = Field(default=500, description="Max nodes per graph")

    # Layout
    entry_position_x: float = Field(default=100.0, description="Entry node x position")
    entry_position_y: float = Field(default=200.0, description="Entry node y position")
    layout_spacing_x: float = Field(
        default=250.0, description="Horizontal spacing for reconstructed graphs"
    )
    default_zoom: float = Field(default=1.0, description="Default zoom level")


class CompilerConfig(BaseSettings):
    """Compiler configuration."""

    model_config = SettingsConfigDict(env_prefix="COMPILER_")

    legacy_kind: str = Field(
        default="legacyItem",
        description="Node kind assigned to legacy items with no recognizable type",
    )
    finish_sentinel: str = Field(
        default="finish",
        description="Legacy 'connectedTo' value meaning the flow ends here",
    )


class StorageConfig(BaseSettings):
    """Storage configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    timeout_s: float = Field(default=10.0, gt=0, description="Repository call timeout")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service configuration
    service_name: str = Field(default="policy-editor", description="Service name")
    host: str = Field(default="0.0.0.0", description="Host to bind")
    port: int = Field(default=8092, ge=1024, le=65535, description="Port")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Deployment environment")
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="console", description="Log format: json or console")

    # API settings
    enable_docs: bool = Field(default=True, description="Enable API docs")
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Allowed CORS origins",
    )

    # Sub-configurations
    editor: EditorConfig = Field(default_factory=EditorConfig)
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
