# producao_app/cache.py
"""
Cache de curta duração para as listas de atividades pendentes de cada setor.

O banco é sempre a fonte da verdade: o cache só guarda o resultado da última
consulta de cada chave e pode ser descartado a qualquer momento. Quem escreve
nele é a rotina de atualização (leitura com cache vencido ou aquecimento em
segundo plano) e a invalidação chamada pelas transições do fluxo.
"""
import logging
import threading
import time
from collections import namedtuple

from sqlalchemy.exc import SQLAlchemyError

from .erros import ErroArmazenamentoTransitorio

logger = logging.getLogger(__name__)

ResultadoCache = namedtuple('ResultadoCache', ['dados', 'parcial', 'obtido_em'])

_Entrada = namedtuple('_Entrada', ['dados', 'obtido_em'])

ERROS_TRANSITORIOS = (SQLAlchemyError, ErroArmazenamentoTransitorio, TimeoutError)


class CacheProgresso:

    def __init__(self, app=None, relogio=time.monotonic):
        self._relogio = relogio
        self._lock = threading.Lock()
        self._entradas = {}
        self._geracoes = {}
        self._em_consulta = {}
        self._parar = threading.Event()
        self._thread = None
        self.ttl = 5.0
        self.intervalo_curto = 3.0
        self.intervalo_longo = 10.0
        self.limiar_backlog = 50
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self.ttl = app.config.get('CACHE_TTL_SEGUNDOS', self.ttl)
        self.intervalo_curto = app.config.get('CACHE_INTERVALO_CURTO', self.intervalo_curto)
        self.intervalo_longo = app.config.get('CACHE_INTERVALO_LONGO', self.intervalo_longo)
        self.limiar_backlog = app.config.get('CACHE_LIMIAR_BACKLOG', self.limiar_backlog)
        self.parar_aquecimento()
        self.limpar()
        app.extensions['cache_progresso'] = self

    # --- LEITURA ---

    def obter(self, chave, carregador, fallback=None, ttl=None):
        """
        Retorna o valor da chave. Se a entrada não existe ou venceu, consulta
        o banco com `carregador`. Se a consulta falhar, devolve o último valor
        conhecido (mesmo vencido) ou o resultado de `fallback`, sempre marcado
        como parcial. Nunca propaga erro de banco.
        """
        ttl = self.ttl if ttl is None else ttl
        with self._lock:
            entrada = self._entradas.get(chave)
        if entrada is not None and self._relogio() - entrada.obtido_em < ttl:
            return ResultadoCache(entrada.dados, False, entrada.obtido_em)

        try:
            return self.atualizar(chave, carregador)
        except ERROS_TRANSITORIOS as e:
            logger.warning(f"Falha ao consultar '{chave}', usando dados de contingência: {e}")

        if entrada is not None:
            return ResultadoCache(entrada.dados, True, entrada.obtido_em)
        if fallback is not None:
            try:
                return ResultadoCache(fallback(), True, self._relogio())
            except ERROS_TRANSITORIOS as e:
                logger.error(f"Consulta reduzida para '{chave}' também falhou: {e}")
        return ResultadoCache([], True, self._relogio())

    def idade(self, chave):
        """Segundos desde a última atualização da chave, ou None se não houver entrada."""
        with self._lock:
            entrada = self._entradas.get(chave)
        if entrada is None:
            return None
        return self._relogio() - entrada.obtido_em

    def tamanho(self, chave):
        with self._lock:
            entrada = self._entradas.get(chave)
        if entrada is None or entrada.dados is None:
            return 0
        try:
            return len(entrada.dados)
        except TypeError:
            return 0

    # --- ESCRITA ---

    def atualizar(self, chave, carregador):
        """
        Executa a consulta e guarda o resultado. Se a chave for invalidada
        enquanto a consulta roda, o resultado é devolvido mas não é guardado,
        para não sobrescrever a invalidação com dados anteriores à escrita.
        """
        with self._lock:
            self._em_consulta[chave] = self._em_consulta.get(chave, 0) + 1
            geracao = self._geracoes.get(chave, 0)
        try:
            dados = carregador()
            agora = self._relogio()
            with self._lock:
                if self._geracoes.get(chave, 0) == geracao:
                    self._entradas[chave] = _Entrada(dados, agora)
                else:
                    logger.debug(f"Resultado de '{chave}' descartado: chave invalidada durante a consulta")
        finally:
            with self._lock:
                self._encerrar_consulta(chave)
        return ResultadoCache(dados, False, agora)

    def _encerrar_consulta(self, chave):
        # Sem consulta em andamento a geração da chave não é mais necessária
        restantes = self._em_consulta.pop(chave, 1) - 1
        if restantes > 0:
            self._em_consulta[chave] = restantes
        else:
            self._geracoes.pop(chave, None)

    def _invalidar_chave(self, chave):
        self._entradas.pop(chave, None)
        if chave in self._em_consulta:
            self._geracoes[chave] = self._geracoes.get(chave, 0) + 1

    def invalidar(self, *chaves):
        with self._lock:
            for chave in chaves:
                self._invalidar_chave(chave)

    def invalidar_prefixo(self, prefixo):
        with self._lock:
            chaves = {c for c in self._entradas if c.startswith(prefixo)}
            chaves.update(c for c in self._em_consulta if c.startswith(prefixo))
            for chave in chaves:
                self._invalidar_chave(chave)
        return len(chaves)

    def chaves_registradas(self):
        """Quantidade de chaves com estado guardado (entradas, consultas ou gerações)."""
        with self._lock:
            return len(set(self._entradas) | set(self._em_consulta) | set(self._geracoes))

    def limpar(self):
        with self._lock:
            for chave in list(self._entradas) + list(self._em_consulta):
                self._invalidar_chave(chave)
            self._entradas.clear()

    # --- AQUECIMENTO EM SEGUNDO PLANO ---

    def intervalo_para(self, chave):
        """Setores com fila grande são atualizados com menos frequência."""
        if self.tamanho(chave) > self.limiar_backlog:
            return self.intervalo_longo
        return self.intervalo_curto

    def aquecer(self, fontes):
        """
        Uma rodada de aquecimento. `fontes` mapeia chave -> carregador. Atualiza
        as chaves sem entrada ou cuja idade já passou do intervalo delas.
        Retorna as chaves atualizadas.
        """
        atualizadas = []
        for chave, carregador in fontes.items():
            idade = self.idade(chave)
            if idade is not None and idade < self.intervalo_para(chave):
                continue
            try:
                self.atualizar(chave, carregador)
                atualizadas.append(chave)
            except ERROS_TRANSITORIOS as e:
                logger.warning(f"Aquecimento de '{chave}' falhou, mantendo dados anteriores: {e}")
        return atualizadas

    def iniciar_aquecimento(self, app, obter_fontes, passo=1.0):
        """Inicia a thread que mantém o cache quente independente das requisições."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._parar.clear()

        def _loop():
            logger.info("Aquecimento do cache de setores iniciado")
            while not self._parar.wait(passo):
                try:
                    with app.app_context():
                        self.aquecer(obter_fontes())
                except Exception:
                    logger.exception("Erro inesperado no aquecimento do cache")

        self._thread = threading.Thread(target=_loop, name='aquecimento-cache', daemon=True)
        self._thread.start()
        return self._thread

    def parar_aquecimento(self, timeout=2.0):
        self._parar.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
