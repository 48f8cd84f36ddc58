import os
import re
from datetime import datetime, date

from flask import Flask, request, jsonify, session, Response
from werkzeug.security import generate_password_hash, check_password_hash

import bicho
import pagamentos
from armazenamento import (
    supabase, inserir, buscar, buscar_um, atualizar, atualizar_se_status, remover,
    obter_configuracao, atualizar_configuracao, atualizar_saldo, debitar_saldo,
    registrar_transacao, log_error, log_info, ErroOperacao, CONFIGURACOES_PADRAO
)
from ezzebank import ErroGateway
from relatorios import resumo_transacoes, metricas_dashboard, relatorio_vendas, gerar_pdf_relatorio_vendas
from validadores import (
    TIPOS_CHAVE_PIX, valida_cpf, valida_chave_pix, somente_digitos, sanitizar_dados_entrada
)
from valores import (
    parse_money_value, arredondar, format_currency, multiplicador_da_odds,
    calcular_ganho_potencial, aposta_maxima_para_modalidade
)

app = Flask(__name__)
app.secret_key = os.getenv('SECRET_KEY', 'pixbet-bicho-dev-secret-key')

APP_VERSION = "1.0.0"
ADMIN_USERNAME = os.getenv('ADMIN_USERNAME')
ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD')

VALOR_MINIMO_DEPOSITO = 1.00
VALOR_MINIMO_SAQUE = 1.00
DIAS_SORTEIOS_FUTUROS = 3

STATUS_SAQUE_ABERTOS = ['pending', 'processing']

CHAVES_VALOR = ['max_bet_amount', 'max_payout', 'min_bet_amount', 'default_bet_amount',
                'auto_approve_withdrawal_limit']
CHAVES_COR = ['main_color', 'secondary_color', 'accent_color']
CHAVES_BOOLEANAS = ['allow_user_registration', 'allow_deposits', 'allow_withdrawals',
                    'maintenance_mode', 'auto_approve_withdrawals']
CHAVES_PUBLICAS = ['max_bet_amount', 'max_payout', 'min_bet_amount', 'default_bet_amount',
                   'main_color', 'secondary_color', 'accent_color', 'allow_user_registration',
                   'allow_deposits', 'allow_withdrawals', 'maintenance_mode']

# ========== FUNÇÕES AUXILIARES ==========

def _inteiro(valor):
    try:
        return int(valor)
    except (TypeError, ValueError):
        return None


def _erro(mensagem, status=400):
    return jsonify({'sucesso': False, 'erro': mensagem}), status


def _corpo_json():
    """Corpo JSON da requisição já sanitizado; qualquer coisa que não seja objeto vira {}"""
    data = request.get_json(silent=True)
    return sanitizar_dados_entrada(data) if isinstance(data, dict) else {}


def config_bool(chave):
    return str(obter_configuracao(chave, CONFIGURACOES_PADRAO.get(chave, 'false'))).lower() == 'true'


def config_valor(chave):
    return parse_money_value(obter_configuracao(chave, CONFIGURACOES_PADRAO.get(chave)))


def configuracoes_atuais(chaves=None):
    """Configurações tipadas (valores como float, flags como bool)"""
    resultado = {}
    for chave in (chaves or CONFIGURACOES_PADRAO.keys()):
        if chave in CHAVES_VALOR:
            resultado[chave] = float(config_valor(chave))
        elif chave in CHAVES_BOOLEANAS:
            resultado[chave] = config_bool(chave)
        else:
            resultado[chave] = obter_configuracao(chave, CONFIGURACOES_PADRAO.get(chave))
    return resultado


def validar_session_cliente():
    """Valida se o usuário está logado"""
    return 'usuario_id' in session


def obter_usuario_atual():
    """Obtém dados do usuário logado (None se a sessão não vale mais)"""
    if not validar_session_cliente():
        return None
    usuario = buscar_um('usuarios', id=session.get('usuario_id'))
    if not usuario or not usuario.get('ativo', True):
        return None
    return usuario


def validar_session_admin():
    """Valida se o usuário logado é administrador"""
    if not session.get('is_admin'):
        return False
    usuario = obter_usuario_atual()
    return bool(usuario and usuario.get('is_admin'))


def em_manutencao(usuario):
    return config_bool('maintenance_mode') and not (usuario and usuario.get('is_admin'))


def usuario_publico(usuario):
    dados = {chave: valor for chave, valor in usuario.items() if chave != 'senha_hash'}
    dados['saldo'] = arredondar(usuario.get('saldo') or 0)
    dados['saldo_formatado'] = format_currency(dados['saldo'])
    return dados


def modalidade_publica(modalidade):
    dados = dict(modalidade)
    dados['multiplicador'] = float(multiplicador_da_odds(modalidade['odds']))
    dados['aposta_maxima'] = float(aposta_maxima_para_modalidade(config_valor('max_payout'), modalidade['odds']))
    return dados


def aposta_publica(aposta, modalidades=None, sorteios=None):
    dados = dict(aposta)
    modalidade = (modalidades or {}).get(aposta.get('modalidade_id')) or buscar_um('modalidades', id=aposta.get('modalidade_id')) or {}
    sorteio = (sorteios or {}).get(aposta.get('sorteio_id')) or buscar_um('sorteios', id=aposta.get('sorteio_id')) or {}
    dados['modalidade'] = bicho.nome_tipo_aposta(aposta.get('tipo'), modalidade.get('nome'))
    dados['sorteio'] = sorteio.get('nome')
    dados['sorteio_data'] = sorteio.get('data')
    dados['animais'] = [bicho.nome_do_grupo(g) for g in aposta.get('grupos') or []]
    return dados


def sorteio_publico(sorteio):
    dados = dict(sorteio)
    if sorteio.get('grupo_vencedor'):
        dados['animal_vencedor'] = bicho.nome_do_grupo(sorteio['grupo_vencedor'])
    return dados


def saque_publico(saque, usuario=None):
    dados = dict(saque)
    dados['tipo_chave_nome'] = TIPOS_CHAVE_PIX.get(saque.get('tipo_chave_pix'))
    if usuario:
        dados['username'] = usuario.get('username')
    return dados


def gateway_publico(gateway):
    dados = dict(gateway)
    for campo in ('api_key', 'secret_key'):
        if dados.get(campo):
            dados[campo] = '****' + str(dados[campo])[-4:]
    return dados


def saque_pendente_total(usuario_id):
    return sum(
        float(s['valor']) for s in buscar('saques', usuario_id=usuario_id)
        if s.get('status') in STATUS_SAQUE_ABERTOS
    )


# ========== DADOS INICIAIS ==========

def criar_sorteios_futuros(dias=DIAS_SORTEIOS_FUTUROS, agora=None):
    """Cria os sorteios dos horários padrão que ainda não existem"""
    criados = []
    for horario in bicho.horarios_futuros(agora or datetime.now(), dias):
        data_iso = horario['data'].isoformat()
        if buscar_um('sorteios', nome=horario['nome'], data=data_iso):
            continue
        criados.append(inserir('sorteios', {
            'nome': horario['nome'],
            'hora': horario['hora'],
            'data': data_iso,
            'status': 'pending',
            'resultado': None,
            'grupo_vencedor': None
        }))
    if criados:
        log_info("criar_sorteios_futuros", f"{len(criados)} sorteio(s) criado(s)")
    return criados


def inicializar_dados():
    """Animais, modalidades, configurações, admin e próximos sorteios"""
    if not buscar('animais'):
        for animal in bicho.animais_padrao():
            inserir('animais', animal)
        log_info("inicializar_dados", "Animais cadastrados")

    if not buscar('modalidades'):
        for nome, descricao, odds, tipo in bicho.MODALIDADES_PADRAO:
            inserir('modalidades', {
                'nome': nome,
                'descricao': descricao,
                'odds': odds,
                'tipo': tipo,
                'ativo': True
            })
        log_info("inicializar_dados", "Modalidades cadastradas")

    for chave, valor in CONFIGURACOES_PADRAO.items():
        if obter_configuracao(chave) is None:
            atualizar_configuracao(chave, valor, 'sistema')

    if ADMIN_USERNAME and ADMIN_PASSWORD and not buscar_um('usuarios', username=ADMIN_USERNAME):
        inserir('usuarios', {
            'username': ADMIN_USERNAME,
            'nome': 'Administrador',
            'email': None,
            'cpf': None,
            'senha_hash': generate_password_hash(ADMIN_PASSWORD),
            'saldo': 0.0,
            'is_admin': True,
            'ativo': True
        })
        log_info("inicializar_dados", f"Administrador {ADMIN_USERNAME} criado")

    criar_sorteios_futuros()


try:
    inicializar_dados()
except Exception as e:
    log_error("inicializar_dados", e)


# ========== ROTAS PRINCIPAIS ==========

@app.route('/health')
def health_check():
    """Health check detalhado"""
    try:
        hoje = date.today().isoformat()
        stats = {
            'apostas_hoje': 0,
            'total_usuarios': 0,
            'sorteios_pendentes': 0,
            'sistema_funcionando': True
        }

        try:
            stats['apostas_hoje'] = len([a for a in buscar('apostas') if (a.get('criado_em') or '')[:10] == hoje])
            stats['total_usuarios'] = len([u for u in buscar('usuarios') if not u.get('is_admin')])
            stats['sorteios_pendentes'] = len(buscar('sorteios', status='pending'))
        except Exception as e:
            log_error("health_check_stats", e)
            stats['sistema_funcionando'] = False

        gateway = pagamentos.gateway_ativo() if stats['sistema_funcionando'] else None

        return {
            'status': 'healthy',
            'timestamp': datetime.now().isoformat(),
            'version': APP_VERSION,
            'services': {
                'supabase': supabase is not None,
                'mercadopago': pagamentos.sdk is not None,
                'gateway_ativo': gateway['tipo'] if gateway else 'simulado',
                'flask': True
            },
            'maintenance_mode': config_bool('maintenance_mode'),
            'statistics': stats
        }
    except Exception as e:
        log_error("health_check", e)
        return {'status': 'error', 'error': str(e)}, 500


# ========== AUTENTICAÇÃO ==========

@app.route('/api/register', methods=['POST'])
def register():
    """Cadastra novo usuário e já abre a sessão"""
    try:
        if not config_bool('allow_user_registration'):
            return _erro('Cadastro de novos usuários está desativado', 403)

        data = _corpo_json()
        username = str(data.get('username') or '').strip()
        senha = str(data.get('password') or data.get('senha') or '')
        email = str(data.get('email') or '').strip().lower() or None
        nome = str(data.get('nome') or data.get('name') or '').strip() or None
        cpf = somente_digitos(data.get('cpf')) or None

        if not re.fullmatch(r'[A-Za-z0-9_.]{3,30}', username):
            return _erro('Usuário deve ter de 3 a 30 letras, números, ponto ou _')
        if len(senha) < 6:
            return _erro('Senha deve ter pelo menos 6 caracteres')
        if email and not re.fullmatch(r'[^@\s]+@[^@\s]+\.[^@\s]+', email):
            return _erro('Email inválido')
        if cpf and not valida_cpf(cpf):
            return _erro('CPF inválido')

        if buscar_um('usuarios', username=username):
            return _erro('Nome de usuário já está em uso', 409)
        if email and buscar_um('usuarios', email=email):
            return _erro('Email já cadastrado', 409)
        if cpf and buscar_um('usuarios', cpf=cpf):
            return _erro('CPF já cadastrado', 409)

        usuario = inserir('usuarios', {
            'username': username,
            'nome': nome,
            'email': email,
            'cpf': cpf,
            'senha_hash': generate_password_hash(senha),
            'saldo': 0.0,
            'is_admin': False,
            'ativo': True,
            'chave_pix': None,
            'tipo_chave_pix': None
        })

        session.clear()
        session['usuario_id'] = usuario['id']
        session['is_admin'] = False

        log_info("register", f"Novo usuário cadastrado: {username} (ID {usuario['id']})")
        return jsonify({'sucesso': True, 'usuario': usuario_publico(usuario)}), 201

    except Exception as e:
        log_error("register", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/login', methods=['POST'])
def login():
    try:
        data = _corpo_json()
        username = str(data.get('username') or '').strip()
        senha = str(data.get('password') or data.get('senha') or '')

        if not username or not senha:
            return _erro('Usuário e senha são obrigatórios')

        usuario = buscar_um('usuarios', username=username)
        if not usuario or not check_password_hash(usuario['senha_hash'], senha):
            log_error("login", "Tentativa de login com credenciais inválidas", {"username": username})
            return _erro('Usuário ou senha incorretos', 401)

        if not usuario.get('ativo', True):
            return _erro('Conta desativada', 403)

        session.clear()
        session['usuario_id'] = usuario['id']
        session['is_admin'] = bool(usuario.get('is_admin'))
        session['login_em'] = datetime.now().isoformat()

        log_info("login", f"Usuário logado: {username}")
        return jsonify({'sucesso': True, 'usuario': usuario_publico(usuario)})

    except Exception as e:
        log_error("login", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/logout', methods=['POST'])
def logout():
    usuario_id = session.get('usuario_id')
    session.clear()
    if usuario_id:
        log_info("logout", f"Usuário {usuario_id} saiu")
    return jsonify({'sucesso': True})


@app.route('/api/user')
def usuario_atual():
    usuario = obter_usuario_atual()
    if not usuario:
        return _erro('Faça login primeiro para continuar', 401)
    return jsonify({'sucesso': True, 'usuario': usuario_publico(usuario)})


@app.route('/api/user/pix', methods=['PUT'])
def atualizar_pix_usuario():
    """Salva a chave PIX padrão usada nos saques"""
    try:
        usuario = obter_usuario_atual()
        if not usuario:
            return _erro('Faça login primeiro para continuar', 401)

        data = _corpo_json()
        tipo = data.get('tipo_chave_pix')
        try:
            chave = valida_chave_pix(tipo, data.get('chave_pix'))
        except ValueError as e:
            return _erro(str(e))

        usuario = atualizar('usuarios', usuario['id'], {'chave_pix': chave, 'tipo_chave_pix': tipo})
        log_info("atualizar_pix_usuario", f"Chave PIX atualizada - Usuário {usuario['id']}")
        return jsonify({'sucesso': True, 'usuario': usuario_publico(usuario)})

    except Exception as e:
        log_error("atualizar_pix_usuario", e)
        return _erro('Erro interno do servidor', 500)


# ========== CATÁLOGO ==========

@app.route('/api/animals')
def listar_animais():
    return jsonify(buscar('animais', ordem='grupo'))


@app.route('/api/game-modes')
def listar_modalidades():
    try:
        modalidades = [modalidade_publica(m) for m in buscar('modalidades', ordem='id', ativo=True)]
        return jsonify(modalidades)
    except Exception as e:
        log_error("listar_modalidades", e)
        return jsonify([])


@app.route('/api/draws/upcoming')
def proximos_sorteios():
    try:
        agora = datetime.now()
        sorteios = [
            sorteio_publico(s) for s in buscar('sorteios', ordem='data', status='pending')
            if datetime.fromisoformat(s['data']) > agora
        ]
        return jsonify(sorteios)
    except Exception as e:
        log_error("proximos_sorteios", e)
        return jsonify([])


@app.route('/api/draws/results')
def ultimos_resultados():
    """Últimos sorteios apurados"""
    try:
        limite = min(_inteiro(request.args.get('limit')) or 10, 50)
        sorteios = buscar('sorteios', ordem='data', desc=True, status='completed')[:limite]
        return jsonify([sorteio_publico(s) for s in sorteios])
    except Exception as e:
        log_error("ultimos_resultados", e)
        return jsonify([])


@app.route('/api/draws/<int:sorteio_id>')
def obter_sorteio(sorteio_id):
    sorteio = buscar_um('sorteios', id=sorteio_id)
    if not sorteio:
        return _erro('Sorteio não encontrado', 404)
    return jsonify(sorteio_publico(sorteio))


@app.route('/api/settings')
def configuracoes_publicas():
    try:
        return jsonify(configuracoes_atuais(CHAVES_PUBLICAS))
    except Exception as e:
        log_error("configuracoes_publicas", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/calcular-ganho', methods=['POST'])
def calcular_ganho():
    """Prévia do ganho potencial de uma aposta"""
    try:
        data = _corpo_json()
        tipo_premio = str(data.get('tipo_premio') or "1")
        if tipo_premio not in bicho.TIPOS_PREMIO:
            return _erro('Tipo de prêmio inválido')

        odds = data.get('odds')
        if data.get('modalidade_id'):
            modalidade = buscar_um('modalidades', id=_inteiro(data.get('modalidade_id')))
            if not modalidade:
                return _erro('Modalidade não encontrada', 404)
            odds = modalidade['odds']
        if _inteiro(odds) is None or _inteiro(odds) <= 0:
            return _erro('Cotação inválida')

        valor = parse_money_value(data.get('valor'))
        ganho = calcular_ganho_potencial(valor, odds, tipo_premio)
        maximo = aposta_maxima_para_modalidade(config_valor('max_payout'), odds, tipo_premio)

        return jsonify({
            'sucesso': True,
            'valor': float(valor),
            'ganho_potencial': float(ganho),
            'ganho_formatado': format_currency(ganho),
            'multiplicador': float(multiplicador_da_odds(odds)),
            'aposta_maxima': float(maximo),
            'excede_premio_maximo': ganho > config_valor('max_payout')
        })
    except Exception as e:
        log_error("calcular_ganho", e)
        return _erro('Erro interno do servidor', 500)


# ========== APOSTAS ==========

@app.route('/api/bets', methods=['POST'])
def criar_aposta():
    """Registra uma aposta e debita o valor do saldo"""
    try:
        usuario = obter_usuario_atual()
        if not usuario:
            return _erro('Faça login primeiro para continuar', 401)
        if em_manutencao(usuario):
            return _erro('Sistema em manutenção. Tente novamente mais tarde.', 503)

        data = _corpo_json()

        sorteio = buscar_um('sorteios', id=_inteiro(data.get('sorteio_id')))
        if not sorteio:
            return _erro('Sorteio não encontrado', 404)
        if sorteio['status'] != 'pending' or datetime.fromisoformat(sorteio['data']) <= datetime.now():
            return _erro('Este sorteio não aceita mais apostas')

        modalidade = buscar_um('modalidades', id=_inteiro(data.get('modalidade_id')))
        if not modalidade:
            return _erro('Modalidade não encontrada', 404)
        if not modalidade.get('ativo'):
            return _erro('Modalidade indisponível')

        tipo_premio = str(data.get('tipo_premio') or "1")
        if tipo_premio not in bicho.TIPOS_PREMIO:
            return _erro('Tipo de prêmio inválido')

        try:
            grupos, numeros = bicho.validar_selecao(modalidade['tipo'], data.get('grupos'), data.get('numeros'))
        except (TypeError, ValueError) as e:
            return _erro(str(e))

        valor = parse_money_value(data.get('valor'))
        minimo = config_valor('min_bet_amount')
        maximo = config_valor('max_bet_amount')
        if valor < minimo:
            return _erro(f'Valor mínimo de aposta é {format_currency(minimo)}')
        if valor > maximo:
            return _erro(f'Valor máximo de aposta é {format_currency(maximo)}')

        ganho = calcular_ganho_potencial(valor, modalidade['odds'], tipo_premio)
        premio_maximo = config_valor('max_payout')
        if ganho > premio_maximo:
            limite = aposta_maxima_para_modalidade(premio_maximo, modalidade['odds'], tipo_premio)
            return _erro(
                f'Ganho potencial excede o prêmio máximo de {format_currency(premio_maximo)}. '
                f'Aposte no máximo {format_currency(limite)} nesta modalidade.'
            )

        try:
            usuario = debitar_saldo(usuario['id'], valor)
        except ErroOperacao as e:
            return _erro(str(e))

        aposta = inserir('apostas', {
            'usuario_id': usuario['id'],
            'sorteio_id': sorteio['id'],
            'modalidade_id': modalidade['id'],
            'tipo': modalidade['tipo'],
            'tipo_premio': tipo_premio,
            'grupos': grupos,
            'numeros': numeros,
            'valor': float(valor),
            'ganho_potencial': float(ganho),
            'ganho': None,
            'status': 'pending'
        })

        registrar_transacao(
            usuario['id'], 'bet', valor,
            f"Aposta {bicho.nome_tipo_aposta(modalidade['tipo'], modalidade['nome'])} - {sorteio['nome']}",
            aposta['id']
        )

        log_info("criar_aposta", f"Aposta {aposta['id']}: {modalidade['nome']} R$ {valor} - Usuário {usuario['id']}")
        return jsonify({
            'sucesso': True,
            'aposta': aposta_publica(aposta),
            'saldo': arredondar(usuario['saldo'])
        }), 201

    except Exception as e:
        log_error("criar_aposta", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/bets')
def listar_apostas_usuario():
    try:
        usuario = obter_usuario_atual()
        if not usuario:
            return _erro('Faça login primeiro para continuar', 401)

        apostas = buscar('apostas', ordem='criado_em', desc=True, usuario_id=usuario['id'])
        if request.args.get('status'):
            apostas = [a for a in apostas if a.get('status') == request.args['status']]

        modalidades = {m['id']: m for m in buscar('modalidades')}
        sorteios = {s['id']: s for s in buscar('sorteios')}
        return jsonify([aposta_publica(a, modalidades, sorteios) for a in apostas])

    except Exception as e:
        log_error("listar_apostas_usuario", e)
        return jsonify([])


def _pagar_premio(aposta, ganho, sorteio):
    creditado = False
    try:
        atualizar_saldo(aposta['usuario_id'], ganho)
        creditado = True
        registrar_transacao(aposta['usuario_id'], 'win', ganho, f"Prêmio - {sorteio['nome']}", aposta['id'])
    except Exception:
        # desfaz o crédito e devolve a aposta para pendente, para que a reapuração a pague
        if creditado:
            atualizar_saldo(aposta['usuario_id'], -ganho)
        atualizar_se_status('apostas', aposta['id'], ['won'], {
            'status': 'pending', 'ganho': None, 'liquidada_em': None
        })
        raise


def apurar_sorteio(sorteio_id, resultado):
    """Grava o resultado e liquida as apostas pendentes do sorteio (uma única vez).

    Se uma apuração anterior parou no meio, chamar de novo liquida as apostas
    que ficaram pendentes usando o resultado já gravado.
    """
    sorteio = atualizar_se_status('sorteios', sorteio_id, ['pending'], {
        'status': 'completed',
        'resultado': resultado,
        'grupo_vencedor': resultado[0]['grupo'],
        'apurado_em': datetime.now().isoformat()
    })
    apostas = buscar('apostas', sorteio_id=sorteio_id, status='pending')
    if not sorteio:
        sorteio = buscar_um('sorteios', id=sorteio_id)
        if not sorteio or sorteio.get('status') != 'completed' or not apostas:
            raise ErroOperacao('Este sorteio já foi apurado')
        resultado = sorteio['resultado']
        log_info("apurar_sorteio", f"Sorteio {sorteio_id}: retomando liquidação de {len(apostas)} aposta(s)")

    ganhadoras = 0
    total_premios = 0.0

    for aposta in apostas:
        venceu = bicho.aposta_vencedora(aposta, resultado)
        # o ganho potencial gravado já considera a divisão do prêmio "1-5"
        ganho = float(aposta['ganho_potencial']) if venceu else 0.0
        liquidada = atualizar_se_status('apostas', aposta['id'], ['pending'], {
            'status': 'won' if venceu else 'lost',
            'ganho': ganho if venceu else None,
            'liquidada_em': datetime.now().isoformat()
        })
        if not liquidada or not venceu:
            continue

        _pagar_premio(aposta, ganho, sorteio)
        ganhadoras += 1
        total_premios += ganho

    log_info("apurar_sorteio", f"Sorteio {sorteio_id}: {len(apostas)} apostas, {ganhadoras} ganhadoras, R$ {total_premios:.2f}")
    return {
        'sorteio': sorteio_publico(sorteio),
        'apostas_liquidadas': len(apostas),
        'apostas_ganhadoras': ganhadoras,
        'total_premios': arredondar(total_premios)
    }


# ========== PAGAMENTOS ==========

@app.route('/api/payment-gateways')
def gateways_disponiveis():
    gateways = buscar('gateways', ordem='id', ativo=True)
    return jsonify([{'id': g['id'], 'nome': g['nome'], 'tipo': g['tipo']} for g in gateways])


@app.route('/api/payment/deposit', methods=['POST'])
def criar_deposito():
    """Cria depósito PIX - gateway ativo ou simulado"""
    try:
        usuario = obter_usuario_atual()
        if not usuario:
            return _erro('Faça login primeiro para continuar', 401)
        if em_manutencao(usuario):
            return _erro('Sistema em manutenção. Tente novamente mais tarde.', 503)
        if not config_bool('allow_deposits'):
            return _erro('Depósitos estão temporariamente desativados', 403)

        data = _corpo_json()
        valor = parse_money_value(data.get('valor'))
        if valor < VALOR_MINIMO_DEPOSITO:
            return _erro(f'O valor mínimo para depósito é {format_currency(VALOR_MINIMO_DEPOSITO)}')

        transacao = inserir('transacoes_pagamento', {
            'usuario_id': usuario['id'],
            'valor': float(valor),
            'tipo': 'deposit',
            'status': 'pending',
            'gateway': None,
            'external_id': None,
            'qr_code': None,
            'qr_code_url': None,
            'detalhes': None
        })

        try:
            cobranca = pagamentos.criar_cobranca(transacao, usuario, request.url_root)
        except ErroGateway as e:
            pagamentos.registrar_falha_cobranca(transacao['id'], e)
            log_error("criar_deposito", e, {"transacao_id": transacao['id']})
            return _erro(str(e), 502)

        transacao = atualizar('transacoes_pagamento', transacao['id'], {
            'gateway': cobranca['gateway'],
            'external_id': cobranca['external_id'],
            'qr_code': cobranca['qr_code'],
            'qr_code_url': cobranca['qr_code_url'],
            'detalhes': cobranca['detalhes']
        })

        log_info("criar_deposito", f"Depósito {transacao['id']} de R$ {valor} via {cobranca['gateway']}")
        return jsonify({
            'sucesso': True,
            'transacao_id': transacao['id'],
            'external_id': cobranca['external_id'],
            'pix_copia_cola': cobranca['qr_code'],
            'qr_code_url': cobranca['qr_code_url'],
            'valor': float(valor),
            'status': transacao['status'],
            'gateway': cobranca['gateway'],
            'simulado': cobranca['simulado']
        }), 201

    except Exception as e:
        log_error("criar_deposito", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/payment/<int:transacao_id>/status')
def status_deposito(transacao_id):
    """Consulta o status do depósito e credita o saldo quando aprovado"""
    try:
        usuario = obter_usuario_atual()
        if not usuario:
            return _erro('Faça login primeiro para continuar', 401)

        transacao = buscar_um('transacoes_pagamento', id=transacao_id)
        if not transacao or (transacao['usuario_id'] != usuario['id'] and not usuario.get('is_admin')):
            return _erro('Transação não encontrada', 404)

        if transacao['status'] in pagamentos.STATUS_ABERTOS:
            novo_status = pagamentos.consultar_status_gateway(transacao)
            if novo_status != transacao['status']:
                pagamentos.aplicar_status_pagamento(transacao['id'], novo_status)
                transacao = buscar_um('transacoes_pagamento', id=transacao_id)

        saldo = buscar_um('usuarios', id=transacao['usuario_id'])['saldo']
        return jsonify({
            'sucesso': True,
            'transacao_id': transacao['id'],
            'status': transacao['status'],
            'valor': arredondar(transacao['valor']),
            'saldo': arredondar(saldo)
        })

    except Exception as e:
        log_error("status_deposito", e, {"transacao_id": transacao_id})
        return _erro('Erro interno do servidor', 500)


@app.route('/api/payments')
def listar_depositos_usuario():
    usuario = obter_usuario_atual()
    if not usuario:
        return _erro('Faça login primeiro para continuar', 401)
    transacoes = buscar('transacoes_pagamento', ordem='criado_em', desc=True, usuario_id=usuario['id'])
    return jsonify([{chave: valor for chave, valor in t.items() if chave != 'detalhes'} for t in transacoes])


@app.route('/api/webhooks/ezzebank', methods=['POST'])
def webhook_ezzebank():
    """Webhook da Ezzebank"""
    try:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({'error': 'invalid_payload'}), 400
        log_info("webhook_ezzebank", f"Webhook recebido: {payload.get('id')} - {payload.get('status')}")

        servico = pagamentos.servico_ezzebank(pagamentos.gateway_do_tipo('ezzebank'))
        if not servico.verificar_assinatura_webhook(payload, request.headers.get('X-Ezzebank-Signature')):
            log_error("webhook_ezzebank", "Assinatura inválida", {"id": payload.get('id')})
            return jsonify({'error': 'invalid_signature'}), 401

        status = servico.mapear_status(payload['status'])
        transacao = buscar_um('transacoes_pagamento', gateway='ezzebank', external_id=str(payload['id']))
        referencia = str(payload.get('external_reference') or '')
        if not transacao and referencia.startswith('TX-'):
            transacao = buscar_um('transacoes_pagamento', gateway='ezzebank', id=_inteiro(referencia[3:]))

        if not transacao:
            log_error("webhook_ezzebank", "Transação não encontrada", {"id": payload['id']})
            return jsonify({'error': 'transaction_not_found'}), 404

        if payload.get('amount') is not None:
            centavos = int(round(float(transacao['valor']) * 100))
            if _inteiro(payload['amount']) != centavos:
                log_error("webhook_ezzebank", "Valor divergente",
                          {"transacao_id": transacao['id'], "amount": payload['amount'], "esperado": centavos})
                return jsonify({'error': 'amount_mismatch'}), 400

        pagamentos.aplicar_status_pagamento(transacao['id'], status, payload)
        return jsonify({'status': 'ok'}), 200

    except Exception as e:
        log_error("webhook_ezzebank", e)
        return jsonify({'error': 'webhook_error'}), 500


@app.route('/api/webhooks/mercadopago', methods=['POST'])
def webhook_mercadopago():
    """Webhook do Mercado Pago"""
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        log_info("webhook_mercadopago", f"Webhook recebido: {data}")

        recurso = data.get('data')
        if data.get('type') == 'payment' and isinstance(recurso, dict) and recurso.get('id'):
            transacao = buscar_um('transacoes_pagamento', gateway='mercadopago', external_id=str(recurso['id']))
            if transacao:
                # o status é sempre confirmado na API antes de creditar
                novo_status = pagamentos.consultar_status_gateway(transacao)
                pagamentos.aplicar_status_pagamento(transacao['id'], novo_status)

        return jsonify({'status': 'ok'}), 200
    except Exception as e:
        log_error("webhook_mercadopago", e)
        return jsonify({'error': 'webhook_error'}), 500


@app.route('/api/webhooks/pushinpay', methods=['POST'])
def webhook_pushinpay():
    """Webhook da Pushin Pay"""
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = request.form.to_dict()
        if data.get('id'):
            transacao = buscar_um('transacoes_pagamento', gateway='pushinpay', external_id=str(data['id']))
            if transacao:
                novo_status = pagamentos.consultar_status_gateway(transacao)
                pagamentos.aplicar_status_pagamento(transacao['id'], novo_status)
        return jsonify({'status': 'ok'}), 200
    except Exception as e:
        log_error("webhook_pushinpay", e)
        return jsonify({'error': 'webhook_error'}), 500


# ========== SAQUES ==========

@app.route('/api/withdrawals', methods=['POST'])
def solicitar_saque():
    """Solicita saque via PIX"""
    try:
        usuario = obter_usuario_atual()
        if not usuario:
            return _erro('Faça login primeiro para continuar', 401)
        if em_manutencao(usuario):
            return _erro('Sistema em manutenção. Tente novamente mais tarde.', 503)
        if not config_bool('allow_withdrawals'):
            return _erro('Saques estão temporariamente desativados', 403)

        data = _corpo_json()
        valor = parse_money_value(data.get('valor'))
        tipo_chave = data.get('tipo_chave_pix') or usuario.get('tipo_chave_pix')
        chave = data.get('chave_pix') or usuario.get('chave_pix')

        if valor < VALOR_MINIMO_SAQUE:
            return _erro(f'O valor mínimo para saque é {format_currency(VALOR_MINIMO_SAQUE)}')

        try:
            chave = valida_chave_pix(tipo_chave, chave)
        except ValueError as e:
            return _erro(str(e))

        disponivel = float(usuario.get('saldo') or 0) - saque_pendente_total(usuario['id'])
        if round(disponivel, 2) < float(valor):
            return _erro(f'Saldo disponível insuficiente ({format_currency(max(disponivel, 0))})')

        status = 'pending'
        if config_bool('auto_approve_withdrawals') and valor <= config_valor('auto_approve_withdrawal_limit'):
            status = 'processing'

        saque = inserir('saques', {
            'usuario_id': usuario['id'],
            'valor': float(valor),
            'status': status,
            'chave_pix': chave,
            'tipo_chave_pix': tipo_chave,
            'processado_em': None,
            'processado_por': None,
            'motivo_rejeicao': None,
            'observacoes': None
        })

        log_info("solicitar_saque", f"Saque {saque['id']} de R$ {valor} solicitado - Usuário {usuario['id']} ({status})")
        return jsonify({'sucesso': True, 'saque': saque_publico(saque)}), 201

    except Exception as e:
        log_error("solicitar_saque", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/withdrawals')
def listar_saques_usuario():
    usuario = obter_usuario_atual()
    if not usuario:
        return _erro('Faça login primeiro para continuar', 401)
    saques = buscar('saques', ordem='criado_em', desc=True, usuario_id=usuario['id'])
    return jsonify([saque_publico(s) for s in saques])


@app.route('/api/transactions')
def listar_transacoes_usuario():
    usuario = obter_usuario_atual()
    if not usuario:
        return _erro('Faça login primeiro para continuar', 401)
    transacoes = buscar('transacoes', ordem='criado_em', desc=True, usuario_id=usuario['id'])
    if request.args.get('tipo'):
        transacoes = [t for t in transacoes if t.get('tipo') == request.args['tipo']]
    return jsonify(transacoes)


# ========== ROTAS ADMIN ==========

@app.route('/api/admin/stats')
def admin_stats():
    """Estatísticas do painel"""
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        hoje = date.today().isoformat()
        stats = metricas_dashboard()
        stats['hoje'] = resumo_transacoes(hoje, hoje)
        stats['sistema_ativo'] = not config_bool('maintenance_mode')

        log_info("admin_stats", "Stats consultadas")
        return jsonify(stats)

    except Exception as e:
        log_error("admin_stats", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/users')
def admin_usuarios():
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        busca = (request.args.get('busca') or '').strip().lower()
        usuarios = buscar('usuarios', ordem='id')
        if busca:
            usuarios = [
                u for u in usuarios
                if busca in (u.get('username') or '').lower()
                or busca in (u.get('email') or '').lower()
                or busca in (u.get('nome') or '').lower()
            ]
        return jsonify([usuario_publico(u) for u in usuarios])

    except Exception as e:
        log_error("admin_usuarios", e)
        return jsonify([])


@app.route('/api/admin/users/<int:usuario_id>', methods=['PUT'])
def admin_atualizar_usuario(usuario_id):
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        usuario = buscar_um('usuarios', id=usuario_id)
        if not usuario:
            return _erro('Usuário não encontrado', 404)

        data = _corpo_json()
        dados = {}
        for campo in ('nome', 'email'):
            if campo in data:
                dados[campo] = data[campo] or None
        for campo in ('ativo', 'is_admin'):
            if campo in data:
                dados[campo] = bool(data[campo])
        if data.get('senha'):
            if len(str(data['senha'])) < 6:
                return _erro('Senha deve ter pelo menos 6 caracteres')
            dados['senha_hash'] = generate_password_hash(str(data['senha']))

        if usuario_id == session.get('usuario_id') and (dados.get('ativo') is False or dados.get('is_admin') is False):
            return _erro('Você não pode desativar ou rebaixar sua própria conta')

        usuario = atualizar('usuarios', usuario_id, dados)
        log_info("admin_atualizar_usuario", f"Usuário {usuario_id} atualizado: {sorted(dados)}")
        return jsonify({'sucesso': True, 'usuario': usuario_publico(usuario)})

    except Exception as e:
        log_error("admin_atualizar_usuario", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/users/<int:usuario_id>/balance', methods=['POST'])
def admin_ajustar_saldo(usuario_id):
    """Ajuste manual de saldo (valor positivo credita, negativo debita)"""
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        if not buscar_um('usuarios', id=usuario_id):
            return _erro('Usuário não encontrado', 404)

        data = _corpo_json()
        valor = parse_money_value(data.get('valor'))
        if valor == 0:
            return _erro('Informe um valor diferente de zero')

        try:
            if valor < 0:
                usuario = debitar_saldo(usuario_id, -valor)
            else:
                usuario = atualizar_saldo(usuario_id, valor)
        except ErroOperacao as e:
            return _erro(str(e))

        registrar_transacao(
            usuario_id, 'ajuste', valor,
            data.get('descricao') or f"Ajuste manual por {session.get('usuario_id')}"
        )
        log_info("admin_ajustar_saldo", f"Usuário {usuario_id}: ajuste de R$ {valor}")
        return jsonify({'sucesso': True, 'usuario': usuario_publico(usuario)})

    except Exception as e:
        log_error("admin_ajustar_saldo", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/bets')
def admin_apostas():
    """Apostas paginadas com filtros"""
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        pagina = max(_inteiro(request.args.get('page')) or 1, 1)
        por_pagina = min(max(_inteiro(request.args.get('page_size')) or 20, 1), 100)

        filtros = {}
        for campo in ('usuario_id', 'sorteio_id', 'modalidade_id'):
            if _inteiro(request.args.get(campo)) is not None:
                filtros[campo] = _inteiro(request.args.get(campo))
        if request.args.get('status'):
            filtros['status'] = request.args['status']

        apostas = buscar('apostas', ordem='criado_em', desc=True, **filtros)
        grupo = _inteiro(request.args.get('grupo'))
        if grupo:
            apostas = [a for a in apostas if grupo in (a.get('grupos') or [])]

        total = len(apostas)
        inicio = (pagina - 1) * por_pagina
        modalidades = {m['id']: m for m in buscar('modalidades')}
        sorteios = {s['id']: s for s in buscar('sorteios')}
        usuarios = {u['id']: u for u in buscar('usuarios')}

        itens = []
        for aposta in apostas[inicio:inicio + por_pagina]:
            item = aposta_publica(aposta, modalidades, sorteios)
            item['username'] = (usuarios.get(aposta['usuario_id']) or {}).get('username')
            itens.append(item)

        return jsonify({
            'apostas': itens,
            'total': total,
            'pagina': pagina,
            'por_pagina': por_pagina,
            'total_paginas': (total + por_pagina - 1) // por_pagina
        })

    except Exception as e:
        log_error("admin_apostas", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/draws')
def admin_sorteios():
    if not validar_session_admin():
        return _erro('Acesso negado', 403)
    filtros = {'status': request.args['status']} if request.args.get('status') else {}
    return jsonify([sorteio_publico(s) for s in buscar('sorteios', ordem='data', desc=True, **filtros)])


def _data_hora_sorteio(data, hora):
    try:
        return datetime.strptime(f"{data} {hora}", '%Y-%m-%d %H:%M')
    except (TypeError, ValueError):
        raise ValueError('Data (AAAA-MM-DD) e hora (HH:MM) inválidas')


@app.route('/api/admin/draws', methods=['POST'])
def admin_criar_sorteio():
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        data = _corpo_json()
        nome = data.get('nome')
        if not nome:
            return _erro('Nome do sorteio é obrigatório')
        try:
            quando = _data_hora_sorteio(data.get('data'), data.get('hora'))
        except ValueError as e:
            return _erro(str(e))
        if quando <= datetime.now():
            return _erro('A data do sorteio deve estar no futuro')

        sorteio = inserir('sorteios', {
            'nome': nome,
            'hora': quando.strftime('%H:%M'),
            'data': quando.isoformat(),
            'status': 'pending',
            'resultado': None,
            'grupo_vencedor': None
        })
        log_info("admin_criar_sorteio", f"Sorteio {sorteio['id']} criado: {nome} {sorteio['data']}")
        return jsonify({'sucesso': True, 'sorteio': sorteio}), 201

    except Exception as e:
        log_error("admin_criar_sorteio", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/draws/<int:sorteio_id>', methods=['PUT'])
def admin_atualizar_sorteio(sorteio_id):
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        sorteio = buscar_um('sorteios', id=sorteio_id)
        if not sorteio:
            return _erro('Sorteio não encontrado', 404)
        if sorteio['status'] != 'pending':
            return _erro('Sorteios apurados não podem ser alterados')

        data = _corpo_json()
        atual = datetime.fromisoformat(sorteio['data'])
        dados = {'nome': data.get('nome') or sorteio['nome']}
        if data.get('data') or data.get('hora'):
            try:
                quando = _data_hora_sorteio(
                    data.get('data') or atual.strftime('%Y-%m-%d'),
                    data.get('hora') or atual.strftime('%H:%M')
                )
            except ValueError as e:
                return _erro(str(e))
            dados['data'] = quando.isoformat()
            dados['hora'] = quando.strftime('%H:%M')

        sorteio = atualizar_se_status('sorteios', sorteio_id, ['pending'], dados)
        if not sorteio:
            return _erro('Sorteios apurados não podem ser alterados')
        return jsonify({'sucesso': True, 'sorteio': sorteio})

    except Exception as e:
        log_error("admin_atualizar_sorteio", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/draws/<int:sorteio_id>', methods=['DELETE'])
def admin_remover_sorteio(sorteio_id):
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        sorteio = buscar_um('sorteios', id=sorteio_id)
        if not sorteio:
            return _erro('Sorteio não encontrado', 404)
        if sorteio['status'] != 'pending' or buscar('apostas', sorteio_id=sorteio_id):
            return _erro('Só é possível remover sorteios pendentes e sem apostas')

        remover('sorteios', sorteio_id)
        log_info("admin_remover_sorteio", f"Sorteio {sorteio_id} removido")
        return jsonify({'sucesso': True})

    except Exception as e:
        log_error("admin_remover_sorteio", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/draws/<int:sorteio_id>/result', methods=['POST'])
def admin_resultado_sorteio(sorteio_id):
    """Registra o resultado (milhares e/ou grupos dos 5 prêmios) e liquida as apostas"""
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        if not buscar_um('sorteios', id=sorteio_id):
            return _erro('Sorteio não encontrado', 404)

        data = _corpo_json()
        grupos = data.get('grupos')
        if grupos is None and data.get('grupo'):
            grupos = [data['grupo']]
        try:
            resultado = bicho.montar_resultado(data.get('milhares'), grupos)
        except (TypeError, ValueError) as e:
            return _erro(str(e))

        try:
            apuracao = apurar_sorteio(sorteio_id, resultado)
        except ErroOperacao as e:
            return _erro(str(e))

        return jsonify(dict(apuracao, sucesso=True))

    except Exception as e:
        log_error("admin_resultado_sorteio", e, {"sorteio_id": sorteio_id})
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/draws/future', methods=['POST'])
def admin_sorteios_futuros():
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        data = _corpo_json()
        dias = min(max(_inteiro(data.get('dias')) or DIAS_SORTEIOS_FUTUROS, 1), 30)
        criados = criar_sorteios_futuros(dias)
        return jsonify({'sucesso': True, 'criados': len(criados), 'sorteios': criados})

    except Exception as e:
        log_error("admin_sorteios_futuros", e)
        return _erro('Erro interno do servidor', 500)


def _dados_modalidade(data, atual=None):
    atual = atual or {}
    nome = data.get('nome', atual.get('nome'))
    tipo = data.get('tipo', atual.get('tipo'))
    odds = _inteiro(data.get('odds', atual.get('odds')))

    if not nome:
        raise ValueError('Nome da modalidade é obrigatório')
    if tipo not in bicho.TIPOS_APOSTA:
        raise ValueError('Tipo de aposta inválido')
    if odds is None or odds <= 0:
        raise ValueError('Cotação deve ser um inteiro positivo (centavos do multiplicador)')

    return {
        'nome': nome,
        'descricao': data.get('descricao', atual.get('descricao')),
        'tipo': tipo,
        'odds': odds,
        'ativo': bool(data.get('ativo', atual.get('ativo', True)))
    }


@app.route('/api/admin/game-modes')
def admin_modalidades():
    if not validar_session_admin():
        return _erro('Acesso negado', 403)
    return jsonify([modalidade_publica(m) for m in buscar('modalidades', ordem='id')])


@app.route('/api/admin/game-modes', methods=['POST'])
def admin_criar_modalidade():
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)
        try:
            dados = _dados_modalidade(_corpo_json())
        except ValueError as e:
            return _erro(str(e))
        modalidade = inserir('modalidades', dados)
        log_info("admin_criar_modalidade", f"Modalidade {modalidade['nome']} criada")
        return jsonify({'sucesso': True, 'modalidade': modalidade_publica(modalidade)}), 201
    except Exception as e:
        log_error("admin_criar_modalidade", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/game-modes/<int:modalidade_id>', methods=['PUT'])
def admin_atualizar_modalidade(modalidade_id):
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)
        modalidade = buscar_um('modalidades', id=modalidade_id)
        if not modalidade:
            return _erro('Modalidade não encontrada', 404)
        try:
            dados = _dados_modalidade(_corpo_json(), modalidade)
        except ValueError as e:
            return _erro(str(e))
        modalidade = atualizar('modalidades', modalidade_id, dados)
        return jsonify({'sucesso': True, 'modalidade': modalidade_publica(modalidade)})
    except Exception as e:
        log_error("admin_atualizar_modalidade", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/game-modes/<int:modalidade_id>', methods=['DELETE'])
def admin_remover_modalidade(modalidade_id):
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)
        if not buscar_um('modalidades', id=modalidade_id):
            return _erro('Modalidade não encontrada', 404)
        if buscar('apostas', modalidade_id=modalidade_id):
            # apostas antigas continuam apontando para a modalidade
            atualizar('modalidades', modalidade_id, {'ativo': False})
            return jsonify({'sucesso': True, 'desativada': True})
        remover('modalidades', modalidade_id)
        return jsonify({'sucesso': True, 'desativada': False})
    except Exception as e:
        log_error("admin_remover_modalidade", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/settings')
def admin_configuracoes():
    if not validar_session_admin():
        return _erro('Acesso negado', 403)
    return jsonify(configuracoes_atuais())


@app.route('/api/admin/settings', methods=['PUT'])
def admin_atualizar_configuracoes():
    """Atualiza limites, cores e chaves do sistema"""
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        data = _corpo_json()
        novos = {}
        for chave, valor in data.items():
            if chave in CHAVES_VALOR:
                numero = parse_money_value(valor)
                if numero < 0:
                    return _erro(f'{chave} não pode ser negativo')
                novos[chave] = f"{numero:.2f}"
            elif chave in CHAVES_BOOLEANAS:
                novos[chave] = 'true' if valor in (True, 'true', '1', 1) else 'false'
            elif chave in CHAVES_COR:
                if not re.fullmatch(r'#[0-9a-fA-F]{6}', str(valor)):
                    return _erro(f'Cor inválida para {chave}')
                novos[chave] = str(valor).lower()
            else:
                return _erro(f'Configuração desconhecida: {chave}')

        atuais = configuracoes_atuais(CHAVES_VALOR)
        minimo = parse_money_value(novos.get('min_bet_amount', atuais['min_bet_amount']))
        maximo = parse_money_value(novos.get('max_bet_amount', atuais['max_bet_amount']))
        padrao = parse_money_value(novos.get('default_bet_amount', atuais['default_bet_amount']))
        if minimo <= 0 or minimo > maximo:
            return _erro('Aposta mínima deve ser positiva e menor que a máxima')
        if not minimo <= padrao <= maximo:
            return _erro('Aposta padrão deve ficar entre a mínima e a máxima')

        for chave, valor in novos.items():
            atualizar_configuracao(chave, valor, 'sistema')

        log_info("admin_atualizar_configuracoes", f"Configurações atualizadas: {sorted(novos)}")
        return jsonify({'sucesso': True, 'configuracoes': configuracoes_atuais()})

    except Exception as e:
        log_error("admin_atualizar_configuracoes", e)
        return _erro('Erro interno do servidor', 500)


def _dados_gateway(data, atual=None):
    atual = atual or {}
    nome = data.get('nome', atual.get('nome'))
    tipo = data.get('tipo', atual.get('tipo'))
    if not nome:
        raise ValueError('Nome do gateway é obrigatório')
    if tipo not in pagamentos.TIPOS_GATEWAY:
        raise ValueError('Tipo de gateway inválido')
    return {
        'nome': nome,
        'tipo': tipo,
        'ativo': bool(data.get('ativo', atual.get('ativo', False))),
        'sandbox': bool(data.get('sandbox', atual.get('sandbox', True))),
        'api_key': data.get('api_key', atual.get('api_key')),
        'secret_key': data.get('secret_key', atual.get('secret_key')),
        'config': data.get('config', atual.get('config')) or {}
    }


@app.route('/api/admin/gateways')
def admin_gateways():
    if not validar_session_admin():
        return _erro('Acesso negado', 403)
    return jsonify([gateway_publico(g) for g in buscar('gateways', ordem='id')])


@app.route('/api/admin/gateways', methods=['POST'])
def admin_criar_gateway():
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)
        try:
            dados = _dados_gateway(_corpo_json())
        except ValueError as e:
            return _erro(str(e))
        if pagamentos.gateway_do_tipo(dados['tipo']):
            return _erro(f"Já existe um gateway do tipo '{dados['tipo']}'", 409)
        gateway = inserir('gateways', dados)
        log_info("admin_criar_gateway", f"Gateway {gateway['nome']} ({gateway['tipo']}) criado")
        return jsonify({'sucesso': True, 'gateway': gateway_publico(gateway)}), 201
    except Exception as e:
        log_error("admin_criar_gateway", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/gateways/<int:gateway_id>', methods=['PUT'])
def admin_atualizar_gateway(gateway_id):
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)
        gateway = buscar_um('gateways', id=gateway_id)
        if not gateway:
            return _erro('Gateway não encontrado', 404)
        try:
            dados = _dados_gateway(_corpo_json(), gateway)
        except ValueError as e:
            return _erro(str(e))
        outro = pagamentos.gateway_do_tipo(dados['tipo'])
        if outro and outro['id'] != gateway_id:
            return _erro(f"Já existe um gateway do tipo '{dados['tipo']}'", 409)
        gateway = atualizar('gateways', gateway_id, dados)
        return jsonify({'sucesso': True, 'gateway': gateway_publico(gateway)})
    except Exception as e:
        log_error("admin_atualizar_gateway", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/gateways/<int:gateway_id>', methods=['DELETE'])
def admin_remover_gateway(gateway_id):
    if not validar_session_admin():
        return _erro('Acesso negado', 403)
    if not remover('gateways', gateway_id):
        return _erro('Gateway não encontrado', 404)
    log_info("admin_remover_gateway", f"Gateway {gateway_id} removido")
    return jsonify({'sucesso': True})


@app.route('/api/admin/withdrawals')
def admin_saques():
    """Obtém lista de saques para o admin"""
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        status = request.args.get('status')
        filtros = {'status': status} if status and status != 'todos' else {}
        usuarios = {u['id']: u for u in buscar('usuarios')}
        saques = [
            saque_publico(s, usuarios.get(s['usuario_id']))
            for s in buscar('saques', ordem='criado_em', desc=True, **filtros)
        ]

        log_info("admin_saques", f"Saques consultados - Status: {status or 'todos'}, Total: {len(saques)}")
        return jsonify(saques)

    except Exception as e:
        log_error("admin_saques", e)
        return jsonify([])


@app.route('/api/admin/withdrawals/<int:saque_id>', methods=['PUT'])
def admin_processar_saque(saque_id):
    """Aprova, rejeita ou coloca em processamento um saque"""
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        data = _corpo_json()
        novo_status = data.get('status')
        if novo_status not in ('processing', 'approved', 'rejected'):
            return _erro('Status inválido')

        saque = buscar_um('saques', id=saque_id)
        if not saque:
            return _erro('Saque não encontrado', 404)
        if saque['status'] not in STATUS_SAQUE_ABERTOS:
            return _erro('Saques aprovados ou rejeitados não podem ser alterados')

        dados = {
            'status': novo_status,
            'observacoes': data.get('observacoes') or saque.get('observacoes')
        }
        permitidos = STATUS_SAQUE_ABERTOS
        if novo_status == 'processing':
            permitidos = ['pending']
        else:
            dados['processado_em'] = datetime.now().isoformat()
            dados['processado_por'] = session.get('usuario_id')
        if novo_status == 'rejected':
            dados['motivo_rejeicao'] = data.get('motivo_rejeicao') or data.get('motivo')

        if novo_status == 'approved':
            try:
                debitar_saldo(saque['usuario_id'], saque['valor'])
            except ErroOperacao as e:
                return _erro(str(e))

        atualizado = atualizar_se_status('saques', saque_id, permitidos, dados)
        if not atualizado:
            if novo_status == 'approved':
                atualizar_saldo(saque['usuario_id'], saque['valor'])
            return _erro('O status do saque mudou. Atualize a lista e tente novamente.', 409)

        if novo_status == 'approved':
            registrar_transacao(
                saque['usuario_id'], 'withdrawal', saque['valor'],
                f"Saque PIX ({TIPOS_CHAVE_PIX.get(saque['tipo_chave_pix'])})", saque_id
            )

        log_info("admin_processar_saque", f"Saque {saque_id} -> {novo_status}")
        return jsonify({'sucesso': True, 'saque': saque_publico(atualizado)})

    except Exception as e:
        log_error("admin_processar_saque", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/transactions')
def admin_transacoes():
    if not validar_session_admin():
        return _erro('Acesso negado', 403)
    filtros = {}
    if request.args.get('tipo'):
        filtros['tipo'] = request.args['tipo']
    if _inteiro(request.args.get('usuario_id')) is not None:
        filtros['usuario_id'] = _inteiro(request.args.get('usuario_id'))
    return jsonify(buscar('transacoes', ordem='criado_em', desc=True, **filtros))


@app.route('/api/admin/transactions/summary')
def admin_resumo_transacoes():
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)
        inicio = request.args.get('inicio')
        fim = request.args.get('fim')
        return jsonify(resumo_transacoes(inicio, fim))
    except Exception as e:
        log_error("admin_resumo_transacoes", e)
        return _erro('Erro interno do servidor', 500)


@app.route('/api/admin/relatorio-vendas')
def admin_relatorio_vendas():
    """Gera relatório de vendas (JSON ou PDF)"""
    try:
        if not validar_session_admin():
            return _erro('Acesso negado', 403)

        filtros = {
            campo: request.args.get(campo)
            for campo in ('grupo', 'sorteio_id', 'usuario_id', 'modalidade_id', 'status', 'data_inicio', 'data_fim')
        }
        relatorio = relatorio_vendas(filtros)

        if request.args.get('formato') == 'pdf':
            pdf = gerar_pdf_relatorio_vendas(relatorio)
            nome_arquivo = f"relatorio-vendas-{date.today().isoformat()}.pdf"
            return Response(pdf, mimetype='application/pdf', headers={
                'Content-Disposition': f'attachment; filename={nome_arquivo}'
            })

        return jsonify(relatorio)

    except ValueError as e:
        return _erro(f'Filtro inválido: {e}')
    except Exception as e:
        log_error("admin_relatorio_vendas", e)
        return _erro('Erro interno do servidor', 500)


# ========== INICIALIZAÇÃO ==========

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 10000))
    debug_mode = os.environ.get('DEBUG', 'False').lower() == 'true'
    gateway = pagamentos.gateway_ativo()

    print(f"🚀 Iniciando PIXBET BICHO v{APP_VERSION}...")
    print(f"🌐 Porta: {port}")
    print(f"💳 Gateway: {gateway['nome'] + ' (' + gateway['tipo'] + ')' if gateway else '🔄 Simulado'}")
    print(f"💳 Mercado Pago: {'✅ Real' if pagamentos.sdk else '🔄 Simulado'}")
    print(f"🔗 Supabase: {'✅ Conectado' if supabase else '🔄 Memória'}")
    print(f"🐾 Animais: {len(buscar('animais'))} - Modalidades: {len(buscar('modalidades'))}")
    print(f"🎯 Sorteios pendentes: {len(buscar('sorteios', status='pending'))}")
    print(f"👤 Admin: {ADMIN_USERNAME or '⚠️ não configurado (defina ADMIN_USERNAME/ADMIN_PASSWORD)'}")

    app.run(host='0.0.0.0', port=port, debug=debug_mode)
