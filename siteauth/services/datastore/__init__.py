"""Relational store for users, sessions, posts and attachment metadata."""

from . import models, util
from .util import Datastore

init_app = util.init_app
current_datastore = util.current_datastore
