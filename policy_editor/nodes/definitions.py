"""
Node Kind Definitions.

Seed catalog of every node kind a routing policy can contain. Changing this
file is a deployment-time change; the registry is never mutated at runtime.

Required fields always carry a non-empty default so that a freshly added
node satisfies its own schema.
"""

from typing import List

from ..config import DataType, NodeCategory, NodeKind
from ..models import NodeDefinition, NodeField

DEFAULT_VOICE = "en-US-Neural2-C"

# Legacy runtime template ids
TEMPLATE_FROM_POLICY = 2
TEMPLATE_INBOUND_NUMBER = 3
TEMPLATE_ACTION = 4
TEMPLATE_SWITCHBOARD = 9
TEMPLATE_FINISH = 23
TEMPLATE_EXTENSION_NUMBER = 31
TEMPLATE_TO_POLICY = 66
TEMPLATE_INBOUND_MESSAGE = 93
TEMPLATE_OMNI_CHANNEL_FLOW = 117
TEMPLATE_NATTERBOX_AI = 145
TEMPLATE_AI_AGENT = 146


def _common_fields(title: str) -> List[NodeField]:
    """Fields every node kind carries."""
    return [
        NodeField(
            name="name",
            data_type=DataType.STRING,
            required=True,
            default_value=title,
            description="Display name of the step",
        ),
        NodeField(
            name="enabled",
            data_type=DataType.BOOLEAN,
            default_value=True,
            description="Whether the runtime executes this step",
        ),
    ]


# =============================================================================
# Entry & Source Nodes
# =============================================================================

ENTRY_NODES = [
    NodeDefinition(
        kind=NodeKind.INIT,
        category=NodeCategory.ENTRY,
        name="Start",
        description="Where call handling starts",
        properties=_common_fields("Start"),
        max_outgoing_edges=1,
        requires_entry=True,
        template_id=TEMPLATE_FROM_POLICY,
    ),
]

SOURCE_NODES = [
    NodeDefinition(
        kind=NodeKind.INPUT,
        category=NodeCategory.SOURCE,
        name="Inbound Numbers",
        description="Public phone numbers that route into this policy",
        properties=_common_fields("Inbound Numbers")
        + [
            NodeField(
                name="phoneNumbers",
                data_type=DataType.ARRAY,
                default_value=[],
                description="Numbers assigned to the policy",
            ),
        ],
        template_id=TEMPLATE_INBOUND_NUMBER,
    ),
    NodeDefinition(
        kind=NodeKind.EXTENSION_NUMBER,
        category=NodeCategory.SOURCE,
        name="Extension Number",
        description="Internal extension that routes into this policy",
        properties=_common_fields("Extension Number")
        + [
            NodeField(
                name="extension",
                data_type=DataType.STRING,
                default_value="",
                description="Extension digits",
            ),
        ],
        template_id=TEMPLATE_EXTENSION_NUMBER,
    ),
    NodeDefinition(
        kind=NodeKind.INBOUND_MESSAGE,
        category=NodeCategory.SOURCE,
        name="Inbound Message",
        description="Digital channel messages that route into this policy",
        properties=_common_fields("Inbound Message")
        + [
            NodeField(
                name="channels",
                data_type=DataType.ARRAY,
                default_value=[],
                description="Messaging channels handled",
            ),
        ],
        template_id=TEMPLATE_INBOUND_MESSAGE,
    ),
]


# =============================================================================
# Action Nodes
# =============================================================================

ACTION_NODES = [
    NodeDefinition(
        kind=NodeKind.SPEAK,
        category=NodeCategory.ACTION,
        name="Speak",
        description="Play a text-to-speech phrase to the caller",
        properties=_common_fields("Speak")
        + [
            NodeField(
                name="voice",
                data_type=DataType.STRING,
                required=True,
                default_value=DEFAULT_VOICE,
                description="Text-to-speech voice",
            ),
            NodeField(
                name="sayPhrase",
                data_type=DataType.STRING,
                default_value="",
                description="Phrase to speak",
            ),
        ],
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.GET_INFO,
        category=NodeCategory.ACTION,
        name="Get Info",
        description="Collect digits from the caller",
        properties=_common_fields("Get Info")
        + [
            NodeField(
                name="itemPhrase",
                data_type=DataType.STRING,
                default_value="",
                description="Prompt played before collecting digits",
            ),
            NodeField(
                name="pattern",
                data_type=DataType.STRING,
                default_value="",
                description="Digit pattern to match",
            ),
            NodeField(
                name="patternAssignTo",
                data_type=DataType.SELECT,
                required=True,
                default_value="NONE",
                options=["NONE", "VARIABLE", "MACRO"],
                description="Where matched digits are stored",
            ),
        ],
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.CALL_QUEUE,
        category=NodeCategory.ACTION,
        name="Call Queue",
        description="Queue the call for the next available agent",
        properties=_common_fields("Call Queue")
        + [
            NodeField(
                name="queueAlgorithm",
                data_type=DataType.SELECT,
                required=True,
                default_value="ROUND_ROBIN",
                options=["ROUND_ROBIN", "LONGEST_IDLE", "LEAST_CALLS", "RANDOM", "RING_ALL"],
                description="Agent selection algorithm",
            ),
            NodeField(
                name="holdMusicType",
                data_type=DataType.SELECT,
                default_value="AUTO",
                options=["AUTO", "PRESET", "CUSTOM"],
                description="Hold music source",
            ),
            NodeField(
                name="exitKey",
                data_type=DataType.STRING,
                default_value="",
                description="Key that lets the caller leave the queue",
            ),
            NodeField(
                name="ringTargets",
                data_type=DataType.ARRAY,
                default_value=[],
                description="Users and groups to ring",
            ),
            NodeField(
                name="callback",
                data_type=DataType.OBJECT,
                default_value={"enabled": False, "activationKey": "#", "maxAttempts": 3},
                description="Queue callback settings",
            ),
        ],
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.HUNT_GROUP,
        category=NodeCategory.ACTION,
        name="Hunt Group",
        description="Ring a group of targets in turn or together",
        properties=_common_fields("Hunt Group")
        + [
            NodeField(
                name="strategy",
                data_type=DataType.SELECT,
                required=True,
                default_value="SEQUENTIAL",
                options=["SEQUENTIAL", "SIMULTANEOUS", "RANDOM"],
                description="Hunt strategy",
            ),
            NodeField(
                name="ringDuration",
                data_type=DataType.NUMBER,
                default_value=20,
                description="Seconds to ring each target",
            ),
            NodeField(
                name="connectTargets",
                data_type=DataType.ARRAY,
                default_value=[],
                description="Targets to hunt through",
            ),
        ],
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.CONNECT_CALL,
        category=NodeCategory.ACTION,
        name="Connect Call",
        description="Bridge the call to a user, number or group",
        properties=_common_fields("Connect Call")
        + [
            NodeField(
                name="connectType",
                data_type=DataType.SELECT,
                required=True,
                default_value="DDI_USER",
                options=["DDI_USER", "NUMBER", "GROUP"],
                description="Kind of connect target",
            ),
            NodeField(
                name="connectValue",
                data_type=DataType.STRING,
                default_value="",
                description="Connect target",
            ),
            NodeField(
                name="ringDuration",
                data_type=DataType.NUMBER,
                default_value=30,
                description="Seconds to ring before giving up",
            ),
        ],
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.RECORD_CALL,
        category=NodeCategory.ACTION,
        name="Record Call",
        description="Start recording the call",
        properties=_common_fields("Record Call")
        + [
            NodeField(
                name="channel",
                data_type=DataType.SELECT,
                required=True,
                default_value="BOTH",
                options=["BOTH", "CALLER", "CALLEE"],
                description="Audio channel to record",
            ),
            NodeField(
                name="retain",
                data_type=DataType.BOOLEAN,
                default_value=False,
                description="Retain the recording after the call",
            ),
        ],
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.NOTIFY,
        category=NodeCategory.ACTION,
        name="Notify",
        description="Send a notification about the call",
        properties=_common_fields("Notify")
        + [
            NodeField(
                name="type",
                data_type=DataType.SELECT,
                required=True,
                default_value="EMAIL",
                options=["EMAIL", "SMS", "CHATTER"],
                description="Notification channel",
            ),
            NodeField(name="to", data_type=DataType.STRING, default_value=""),
            NodeField(name="subject", data_type=DataType.STRING, default_value=""),
            NodeField(name="body", data_type=DataType.STRING, default_value=""),
        ],
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.REQUEST_SKILL,
        category=NodeCategory.ACTION,
        name="Request Skill",
        description="Tag the call with skills for skill-based routing",
        properties=_common_fields("Request Skill")
        + [
            NodeField(name="skills", data_type=DataType.ARRAY, default_value=[]),
            NodeField(name="deleteSkills", data_type=DataType.BOOLEAN, default_value=False),
        ],
        template_id=TEMPLATE_ACTION,
    ),
]


# =============================================================================
# Routing Nodes
# =============================================================================

ROUTING_NODES = [
    NodeDefinition(
        kind=NodeKind.RULE,
        category=NodeCategory.ROUTING,
        name="Rule",
        description="Branch on time of day, caller number and other conditions",
        properties=_common_fields("Rule")
        + [
            NodeField(
                name="rules",
                data_type=DataType.OBJECT,
                default_value={
                    "timeOfDay": [],
                    "countryCode": [],
                    "callerIdWithheld": [],
                    "numberMatch": [],
                    "evaluate": [],
                },
                description="Conditions evaluated per branch",
            ),
        ],
        max_outgoing_edges=None,
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.SWITCHBOARD,
        category=NodeCategory.ROUTING,
        name="Switchboard",
        description="Keypad menu that branches on the digit pressed",
        properties=_common_fields("Switchboard")
        + [
            NodeField(
                name="menuPhrase",
                data_type=DataType.STRING,
                default_value="",
                description="Menu prompt",
            ),
            NodeField(
                name="timeout",
                data_type=DataType.NUMBER,
                default_value=10,
                description="Seconds to wait for a key press",
            ),
        ],
        max_outgoing_edges=None,
        template_id=TEMPLATE_SWITCHBOARD,
    ),
    NodeDefinition(
        kind=NodeKind.ROUTER,
        category=NodeCategory.ROUTING,
        name="AI Router",
        description="Route the call by detected caller intent",
        properties=_common_fields("AI Router")
        + [
            NodeField(
                name="routes",
                data_type=DataType.ARRAY,
                default_value=[],
                description="Intent descriptions, one per branch",
            ),
            NodeField(
                name="fallbackLabel",
                data_type=DataType.STRING,
                default_value="default",
                description="Branch used when no intent matches",
            ),
        ],
        max_outgoing_edges=None,
        template_id=TEMPLATE_NATTERBOX_AI,
    ),
]


# =============================================================================
# AI Nodes
# =============================================================================

AI_NODES = [
    NodeDefinition(
        kind=NodeKind.AI_AGENT,
        category=NodeCategory.AI,
        name="AI Agent",
        description="Hand the conversation to a voice AI agent",
        properties=_common_fields("AI Agent")
        + [
            NodeField(
                name="agentId",
                data_type=DataType.STRING,
                default_value="",
                description="Agent to run",
            ),
            NodeField(
                name="voice",
                data_type=DataType.STRING,
                required=True,
                default_value=DEFAULT_VOICE,
                description="Agent voice",
            ),
        ],
        template_id=TEMPLATE_AI_AGENT,
    ),
    NodeDefinition(
        kind=NodeKind.OMNI_CHANNEL_FLOW,
        category=NodeCategory.AI,
        name="Omni-Channel Flow",
        description="Hand the interaction to an omni-channel flow",
        properties=_common_fields("Omni-Channel Flow")
        + [
            NodeField(name="flowId", data_type=DataType.STRING, default_value=""),
        ],
        template_id=TEMPLATE_OMNI_CHANNEL_FLOW,
    ),
]


# =============================================================================
# Integration Nodes
# =============================================================================

INTEGRATION_NODES = [
    NodeDefinition(
        kind=NodeKind.MANAGE_PROPERTIES,
        category=NodeCategory.INTEGRATION,
        name="Manage Properties",
        description="Set or clear call properties",
        properties=_common_fields("Manage Properties")
        + [
            NodeField(name="properties", data_type=DataType.ARRAY, default_value=[]),
        ],
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.QUERY_OBJECT,
        category=NodeCategory.INTEGRATION,
        name="Query Object",
        description="Look up CRM records for the caller",
        properties=_common_fields("Query Object")
        + [
            NodeField(name="sObject", data_type=DataType.STRING, default_value=""),
            NodeField(name="filterFields", data_type=DataType.ARRAY, default_value=[]),
            NodeField(name="resultSize", data_type=DataType.NUMBER, default_value=1),
            NodeField(
                name="trigger",
                data_type=DataType.SELECT,
                required=True,
                default_value="ALWAYS",
                options=["ALWAYS", "NEVER", "CONDITIONAL"],
            ),
        ],
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.CREATE_RECORD,
        category=NodeCategory.INTEGRATION,
        name="Create Record",
        description="Create a CRM record for the call",
        properties=_common_fields("Create Record")
        + [
            NodeField(name="sObject", data_type=DataType.STRING, default_value=""),
            NodeField(name="fields", data_type=DataType.ARRAY, default_value=[]),
            NodeField(
                name="trigger",
                data_type=DataType.SELECT,
                required=True,
                default_value="ALWAYS",
                options=["ALWAYS", "NEVER", "CONDITIONAL"],
            ),
        ],
        template_id=TEMPLATE_ACTION,
    ),
]


# =============================================================================
# Utility Nodes
# =============================================================================

UTILITY_NODES = [
    NodeDefinition(
        kind=NodeKind.DEBUG,
        category=NodeCategory.UTILITY,
        name="Debug",
        description="Log call state for troubleshooting",
        properties=_common_fields("Debug")
        + [
            NodeField(
                name="level",
                data_type=DataType.SELECT,
                default_value="INFO",
                options=["DEBUG", "INFO", "WARN"],
            ),
        ],
        template_id=TEMPLATE_ACTION,
    ),
]


# =============================================================================
# Terminal Nodes
# =============================================================================

TERMINAL_NODES = [
    NodeDefinition(
        kind=NodeKind.VOICEMAIL,
        category=NodeCategory.TERMINAL,
        name="Voicemail",
        description="Send the caller to voicemail",
        properties=_common_fields("Voicemail")
        + [
            NodeField(
                name="targetType",
                data_type=DataType.SELECT,
                required=True,
                default_value="USER",
                options=["USER", "GROUP"],
            ),
            NodeField(name="targetId", data_type=DataType.STRING, default_value=""),
            NodeField(name="maxDuration", data_type=DataType.NUMBER, default_value=120),
        ],
        max_outgoing_edges=0,
        template_id=TEMPLATE_ACTION,
    ),
    NodeDefinition(
        kind=NodeKind.TO_POLICY,
        category=NodeCategory.TERMINAL,
        name="To Policy",
        description="Continue in another routing policy",
        properties=_common_fields("To Policy")
        + [
            NodeField(name="targetPolicyId", data_type=DataType.STRING, default_value=""),
        ],
        max_outgoing_edges=0,
        template_id=TEMPLATE_TO_POLICY,
    ),
    NodeDefinition(
        kind=NodeKind.OUTPUT,
        category=NodeCategory.TERMINAL,
        name="Finish",
        description="Hang up and end the flow",
        properties=_common_fields("Finish"),
        max_outgoing_edges=0,
        template_id=TEMPLATE_FINISH,
    ),
]


# =============================================================================
# All Nodes Combined
# =============================================================================

ALL_NODES = (
    ENTRY_NODES
    + SOURCE_NODES
    + ACTION_NODES
    + ROUTING_NODES
    + AI_NODES
    + INTEGRATION_NODES
    + UTILITY_NODES
    + TERMINAL_NODES
)
