"""
The representation of the identity of a web service client.

An :py:class:`Agent` is created by a WSGI application for each request (see
:py:mod:`bundlerest.web.rest`) and handed to the Handler processing it.  It is used to decide
whether a client may change the state of the managed runtime.
"""
from collections import OrderedDict
from typing import Iterable, Mapping, Tuple

PUBLIC_AGENT_CLASS = "public"
ADMIN_AGENT_CLASS = "admin"
INVALID_AGENT_CLASS = "invalid"
ANONYMOUS_USER = "anonymous"

class Agent(object):
    """
    a class describing the agent making a request.  An agent's identifier has two main parts: a
    *vehicle*--the software that makes the request--and an *actor*--an authenticated identity,
    either human or functional--that authorizes it.

    The :py:attr:`agent_class` is a category assigned based on how the client authenticated
    (e.g. ``public`` for anonymous clients or ``invalid`` for clients that presented bad
    credentials); it always appears as the first of the agent's :py:attr:`groups`.
    """
    USER: str = "user"
    AUTO: str = "auto"  # for functional identities
    UNKN: str = ""
    PUBLIC: str = PUBLIC_AGENT_CLASS
    ADMIN: str = ADMIN_AGENT_CLASS
    INVALID: str = INVALID_AGENT_CLASS
    ANONYMOUS: str = ANONYMOUS_USER

    def __init__(self, vehicle: str, actortype: str, actorid: str=None, agclass: str=None,
                 agents: Iterable[str]=None, groups: Iterable[str]=None, **kwargs):
        """
        create an agent
        :param str   vehicle:  a name for the software component that this agent originates from.
        :param str actortype:  one of USER, AUTO, or UNKN
        :param str   actorid:  the unique identifier for the actor (e.g. a username)
        :param str   agclass:  an agent classification name (see :py:attr:`agent_class`)
        :param list[str] agents:  the upstream agents that this agent is acting on behalf of
        :param list[str] groups:  names of permission groups the actor should be considered part of
        :param kwargs:  arbitrary key-value pairs that will be saved as custom properties of the agent
        """
        if actortype not in (self.USER, self.AUTO, self.UNKN):
            raise ValueError("Agent: actortype not one of "+str((self.USER, self.AUTO, self.UNKN)))
        self._vehicle = vehicle
        self._actor_type = actortype
        self._actor = actorid
        self._agclass = agclass or self.PUBLIC
        self._groups = list(groups) if groups else []
        self._agents = list(agents) if agents else []
        self._md = OrderedDict((k,v) for k,v in kwargs.items() if v is not None)

    @property
    def actor(self) -> str:
        """
        an identifier for the specific client actor making a request
        """
        return self._actor

    @property
    def actor_type(self) -> str:
        return self._actor_type

    @property
    def vehicle(self) -> str:
        return self._vehicle

    @property
    def agent_class(self) -> str:
        return self._agclass

    @property
    def id(self) -> str:
        """
        an identifier for this agent, of the form *vehicle*/*actor*.
        """
        return f"{self.vehicle}/{self.actor}"

    @property
    def groups(self) -> Tuple[str]:
        return tuple([self._agclass] + [g for g in self._groups if g != self._agclass])

    @property
    def delegated(self) -> Tuple[str]:
        """
        the chain of agents--tools or services--that were delegated to to make this request
        """
        return tuple(self._agents)

    @property
    def is_anonymous(self) -> bool:
        """
        True if this agent does not represent an authenticated, valid identity
        """
        return not self._actor or self._actor == self.ANONYMOUS or self._agclass == self.INVALID

    def get_prop(self, propname: str, defval=None):
        """
        return a custom actor property (as set at construction time)
        """
        return self._md.get(propname, defval)

    def to_dict(self) -> Mapping:
        out = OrderedDict([
            ("vehicle", self.vehicle),
            ("actor", self.actor),
            ("type", self.actor_type),
            ("class", self.agent_class)
        ])
        if self._agents:
            out['delegated'] = list(self._agents)
        return out

    def __str__(self):
        return "Agent(%s)" % self.id
